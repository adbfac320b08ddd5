"""
Komut satırı arayüzü

Typer tabanlı CLI arayüzü.
"""

from dataclasses import replace
from pathlib import Path
from typing import Optional, Tuple

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from . import config as config_module
from . import io, export, viz
from .containers import EEGEpochs, EEGTFR
from .glm import fit_eeg_lm
from .results import QUANTITIES

app = typer.Typer(
    name="eeglm",
    help="EEG verisinde kanal ve zaman noktası başına doğrusal model analizi",
    add_completion=False
)

console = Console()

QUANTITY_DESCRIPTIONS = {
    "coefficients": "Regresyon katsayıları (terim x kanal x zaman)",
    "std_err": "Katsayı standart hataları",
    "t_stats": "t-istatistikleri (katsayı / standart hata)",
    "r_sq": "Model R² değeri (kanal x zaman)",
    "p_values": "İki yönlü p-değerleri",
}


def _load_data(input: str, predictors: Optional[str], verbose: bool) -> EEGEpochs:
    loader = io.EEGDataLoader(verbose=verbose)
    suffix = Path(input).suffix.lower()
    if suffix in ('.csv', '.tsv'):
        frame = pd.read_csv(input, sep='\t' if suffix == '.tsv' else ',')
        data = loader.from_long_frame(frame)
        if predictors:
            data = replace(data, epochs=io.load_predictors(predictors))
        return data
    return loader.load_epochs(input, predictors=predictors)


def _window(values: Tuple[Optional[float], Optional[float]]):
    if values is None or values[0] is None or values[1] is None:
        return None
    return tuple(values)


@app.command()
def fit(
    input: str = typer.Option(..., "--input", "-i", help="Epoch dosyası (.fif, .set) veya uzun tablo (.csv)"),
    predictors: Optional[str] = typer.Option(None, "--predictors", "-p", help="Prediktör tablosu (CSV/TSV/Excel)"),
    formula: Optional[str] = typer.Option(None, "--formula", "-f", help="Model formülü, örn. '~ kosul + scale(rt)'"),
    quantity: Optional[str] = typer.Option(None, "--quantity", "-q", help="Dışa aktarılacak büyüklük"),
    output: str = typer.Option("lm_results.csv", "--output", "-o", help="Çıktı tablo dosyası"),
    wide: bool = typer.Option(False, "--wide", help="Terim başına geniş tablolar yaz"),
    n_jobs: Optional[int] = typer.Option(None, "--n-jobs", "-j", help="Paralel iş sayısı"),
    time_lim: Tuple[float, float] = typer.Option((None, None), "--time-lim", help="Zaman aralığı (başlangıç bitiş)"),
    baseline: Tuple[float, float] = typer.Option((None, None), "--baseline", help="Baseline aralığı (başlangıç bitiş)"),
    plot: Optional[str] = typer.Option(None, "--plot", help="Kelebek grafiği dosya yolu"),
    meta: Optional[str] = typer.Option(None, "--meta", help="Metadata dosya yolu"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Konfigürasyon dosyası"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Detaylı çıktı")
):
    """Kanal ve zaman noktası başına doğrusal model uydur"""

    if verbose:
        console.print("[blue]EEG LM Lab - Analiz başlatılıyor...[/blue]")

    try:
        cfg = config_module.load_config(config) if config else config_module.default_config()
        model_cfg, data_cfg, export_cfg = cfg["model"], cfg["data"], cfg["export"]

        formula = formula or model_cfg["formula"]
        quantity = quantity or export_cfg["quantity"]
        n_jobs = n_jobs if n_jobs is not None else model_cfg["n_jobs"]
        time_lim = _window(time_lim) or data_cfg["time_lim"]
        baseline = _window(baseline) or data_cfg["baseline"]
        plot = plot or export_cfg["figure"]
        meta = meta or export_cfg["metadata"]
        long = export_cfg["long"] and not wide

        if quantity not in QUANTITIES:
            console.print(f"[red]Bilinmeyen büyüklük: {quantity}[/red]")
            console.print(f"Geçerli büyüklükler: {', '.join(QUANTITIES)}")
            raise typer.Exit(1)

        data = _load_data(input, predictors, verbose)

        if time_lim is not None:
            data = data.select_times(time_lim)
        if baseline is not None:
            data = data.rm_baseline(baseline)

        freq_range = data_cfg["tfr_freq_range"]
        if freq_range is not None and not isinstance(data, EEGTFR):
            console.print(
                "[yellow]tfr_freq_range yalnızca zaman-frekans verisinde kullanılır, "
                f"{data.kind} verisi için yok sayıldı[/yellow]"
            )
            freq_range = None

        result = fit_eeg_lm(
            data,
            formula,
            n_jobs=n_jobs,
            max_condition=model_cfg["max_condition"],
            freq_range=freq_range,
            verbose=verbose,
        )

        exporter = export.EEGExporter(verbose=verbose)
        success = exporter.export_lm_table(
            result, output, quantity=quantity, long=long, format=export_cfg["format"]
        )

        if plot:
            visualizer = viz.EEGVisualizer(verbose=verbose)
            fig = visualizer.plot_butterfly(result, quantity=quantity)
            success &= exporter.export_figure(fig, plot)

        if meta:
            metadata = exporter.create_analysis_metadata(
                result,
                input_file=input,
                predictors_file=predictors,
                time_lim=time_lim,
            )
            success &= exporter.export_metadata_file(metadata, meta)

        if success:
            console.print(f"[green]Analiz tamamlandı: {output}[/green]")
        else:
            console.print("[red]Analiz başarısız[/red]")
            raise typer.Exit(1)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Hata: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def info(
    input: str = typer.Option(..., "--input", "-i", help="Epoch dosyası (.fif, .set) veya uzun tablo (.csv)"),
    predictors: Optional[str] = typer.Option(None, "--predictors", "-p", help="Prediktör tablosu")
):
    """Epoch verisi bilgilerini göster"""

    try:
        data = _load_data(input, predictors, verbose=False)

        table = Table(title="EEG Epoch Bilgileri")
        table.add_column("Özellik", style="cyan")
        table.add_column("Değer", style="magenta")

        table.add_row("Dosya", str(input))
        table.add_row("Epoch sayısı", str(data.n_epochs))
        table.add_row("Kanal sayısı", str(data.n_channels))
        table.add_row("Zaman noktası", str(data.n_times))
        table.add_row("Zaman aralığı", f"{data.times[0]:.3f} - {data.times[-1]:.3f} s")
        if data.sfreq:
            table.add_row("Örnekleme frekansı", f"{data.sfreq} Hz")
        table.add_row("Elektrot konumları", "var" if data.chan_info is not None else "yok")

        console.print(table)

        if data.n_channels <= 20:
            console.print("\n[blue]Kanal listesi:[/blue]")
            console.print(", ".join(data.channels))
        else:
            console.print(f"\n[blue]Kanal sayısı: {data.n_channels}[/blue]")
            console.print("İlk 10 kanal:", ", ".join(data.channels[:10]))

        predictor_table = data.predictor_table()
        console.print("\n[blue]Prediktör sütunları:[/blue]")
        for column in predictor_table.columns:
            series = predictor_table[column]
            kind = "sayısal" if pd.api.types.is_numeric_dtype(series) else "kategorik"
            console.print(f"  {column} ({kind}, {series.nunique()} farklı değer)")

    except Exception as e:
        console.print(f"[red]Hata: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def config(
    output: str = typer.Option("config.yaml", "--output", "-o", help="Konfigürasyon dosya yolu"),
    formula: Optional[str] = typer.Option(None, "--formula", "-f", help="Şablona yazılacak formül")
):
    """Konfigürasyon şablonu oluştur"""

    config_data = config_module.default_config()
    if formula:
        config_data["model"]["formula"] = formula

    try:
        path = config_module.save_config(config_data, output)
    except Exception as e:
        console.print(f"[red]Hata: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Konfigürasyon oluşturuldu: {path}[/green]")


@app.command()
def quantities():
    """Dışa aktarılabilir büyüklükleri listele"""

    table = Table(title="Model Büyüklükleri")
    table.add_column("Büyüklük", style="cyan")
    table.add_column("Açıklama", style="magenta")

    for name in QUANTITIES:
        table.add_row(name, QUANTITY_DESCRIPTIONS[name])

    console.print(table)


def main():
    """Ana CLI fonksiyonu"""
    app()


if __name__ == "__main__":
    main()
