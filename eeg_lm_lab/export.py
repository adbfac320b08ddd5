"""
Dışa aktarma modülü

Model sonuç tabloları (CSV/Excel/JSON), SVG/PNG/PDF figürleri ve
JSON/YAML metadata.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import pandas as pd
import yaml
from rich.console import Console

from . import __version__
from .results import QUANTITIES, EEGLMResult

console = Console()

TABLE_FORMATS = {
    'csv': '.csv',
    'excel': '.xlsx',
    'json': '.json',
}


def _dump_json(metadata: Dict[str, Any], f):
    json.dump(metadata, f, indent=2, ensure_ascii=False, default=str)


def _dump_yaml(metadata: Dict[str, Any], f):
    yaml.safe_dump(metadata, f, default_flow_style=False, allow_unicode=True, sort_keys=False)


METADATA_WRITERS = {
    'json': _dump_json,
    'yaml': _dump_yaml,
    'yml': _dump_yaml,
}


def _target(file_path: Union[str, Path], format: str) -> Tuple[Path, str]:
    """Uzantı yoksa formattan ekle, varsa formatı uzantıdan al; dizini oluştur"""
    file_path = Path(file_path)
    if file_path.suffix:
        format = file_path.suffix.lstrip('.').lower()
    else:
        file_path = file_path.with_suffix(f'.{format}')
    file_path.parent.mkdir(parents=True, exist_ok=True)
    return file_path, format


def _safe_name(term: str) -> str:
    """Terim adını dosya adına uygun hale getir"""
    return (
        term.replace('(', '').replace(')', '').replace(':', '_x_').replace(' ', '_')
    )


def _write_table(df: pd.DataFrame, file_path: Path, format: str, index: bool = False):
    if format == 'csv':
        df.to_csv(file_path, index=index)
    elif format == 'excel':
        df.to_excel(file_path, index=index)
    elif format == 'json':
        df.to_json(file_path, orient='records' if not index else 'index', indent=2)
    else:
        raise ValueError(f"Desteklenmeyen format: {format}")


class EEGExporter:
    """EEG model sonucu dışa aktarma sınıfı"""

    def __init__(self, verbose: bool = True):
        self.verbose = verbose
        self.exported_files: List[Path] = []

    def _record(self, file_path: Path, label: str):
        self.exported_files.append(file_path)
        if self.verbose:
            console.print(f"[green]{label} kaydedildi: {file_path}[/green]")

    def export_figure(
        self,
        fig: plt.Figure,
        file_path: Union[str, Path],
        format: str = 'svg',
        dpi: int = 300,
        metadata: Optional[Dict] = None
    ) -> bool:
        """
        Figürü kaydet

        Dosya uzantısı varsa format ondan alınır. `metadata` verilirse
        figürle aynı adlı bir JSON dosyası da yazılır.
        """
        file_path, format = _target(file_path, format)

        try:
            fig.savefig(file_path, format=format, dpi=dpi, bbox_inches='tight', facecolor='white')
        except (ValueError, OSError) as e:
            console.print(f"[red]Figür kaydetme hatası: {e}[/red]")
            return False

        self._record(file_path, "Figür")
        if metadata:
            return self.export_metadata_file(metadata, file_path.with_suffix('.json'))
        return True

    def export_metadata_file(
        self,
        metadata: Dict[str, Any],
        file_path: Union[str, Path],
        format: str = 'json'
    ) -> bool:
        """Metadata sözlüğünü JSON veya YAML olarak yaz (format uzantıdan)"""
        file_path, format = _target(file_path, format)

        writer = METADATA_WRITERS.get(format)
        if writer is None:
            console.print(f"[red]Desteklenmeyen metadata formatı: {format}[/red]")
            return False

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                writer(metadata, f)
        except (OSError, TypeError, yaml.YAMLError) as e:
            console.print(f"[red]Metadata kaydetme hatası: {e}[/red]")
            return False

        self._record(file_path, "Metadata")
        return True

    def export_lm_table(
        self,
        result: EEGLMResult,
        file_path: Union[str, Path],
        quantity: str = 'coefficients',
        long: bool = True,
        format: str = 'csv',
        terms: Optional[Sequence[str]] = None
    ) -> bool:
        """
        Model sonucunu tablo olarak dışa aktar

        Uzun biçimde tek dosya yazılır. Geniş biçimde her terim için ayrı
        bir dosya yazılır, dosya adına terim adı eklenir.

        Parameters
        ----------
        result : EEGLMResult
            Model sonucu
        file_path : str or Path
            Dosya yolu
        quantity : str
            'coefficients', 'std_err', 't_stats', 'r_sq' veya 'p_values'
        long : bool
            Uzun (True) veya geniş (False) biçim
        format : str
            Dosya formatı ('csv', 'excel', 'json')
        terms : sequence, optional
            Yalnızca bu terimler

        Returns
        -------
        bool
            Başarı durumu
        """
        file_path = Path(file_path)
        format = format.lower()

        if format not in TABLE_FORMATS:
            console.print(f"[red]Desteklenmeyen format: {format}[/red]")
            return False

        if not file_path.suffix:
            file_path = file_path.with_suffix(TABLE_FORMATS[format])

        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            if long:
                df = result.as_dataframe(quantity, long=True, terms=terms)
                _write_table(df, file_path, format)
                written = [file_path]
            else:
                tables = result.as_dataframe(quantity, long=False, terms=terms)
                written = []
                for term, df in tables.items():
                    term_path = file_path.with_name(
                        f"{file_path.stem}_{_safe_name(term)}{file_path.suffix}"
                    )
                    _write_table(df, term_path, format, index=True)
                    written.append(term_path)

            for path in written:
                self._record(path, "Model tablosu")

            return True

        except Exception as e:
            console.print(f"[red]Model tablosu kaydetme hatası: {e}[/red]")
            return False

    def create_analysis_metadata(
        self,
        result: EEGLMResult,
        input_file: Optional[str] = None,
        predictors_file: Optional[str] = None,
        time_lim: Optional[Sequence[float]] = None,
        correction: Optional[Dict] = None,
        visualization: Optional[Dict] = None
    ) -> Dict[str, Any]:
        """
        Analiz metadata'sı oluştur

        Parameters
        ----------
        result : EEGLMResult
            Model sonucu
        input_file : str, optional
            Epoch dosyası
        predictors_file : str, optional
            Prediktör tablosu dosyası
        time_lim : sequence, optional
            Kullanılan zaman aralığı
        correction : dict, optional
            Çoklu karşılaştırma bilgileri
        visualization : dict, optional
            Görselleştirme bilgileri

        Returns
        -------
        dict
            Metadata sözlüğü
        """
        design = result.design
        return {
            'analysis_info': {
                'timestamp': datetime.now().isoformat(),
                'software_version': f'eeg-lm-lab-{__version__}',
                'input_file': str(input_file) if input_file else None,
                'predictors_file': str(predictors_file) if predictors_file else None,
            },
            'model': {
                'formula': design.spec.formula,
                'intercept': design.spec.intercept,
                'terms': list(result.term_names),
                'levels': {k: [str(v) for v in lv] for k, lv in design.levels.items()},
                'scaling': {k: {'mean': float(m), 'sd': float(s)} for k, (m, s) in design.scaling.items()},
                'n_epochs': design.n_rows,
                'n_excluded': design.n_excluded,
                'df_resid': result.df_resid,
            },
            'data': {
                'n_channels': result.n_channels,
                'n_times': result.n_times,
                'channels': list(result.channels),
                'time_range': [float(result.times[0]), float(result.times[-1])],
                'time_lim': list(time_lim) if time_lim is not None else None,
            },
            'statistics': correction or {},
            'visualization': visualization or {},
        }

    def create_publication_caption(
        self,
        result: EEGLMResult,
        quantity: str = 't_stats',
        correction_method: Optional[str] = None
    ) -> str:
        """Model sonucu için yayın açıklaması oluştur"""
        quantity_names = {
            'coefficients': 'Regresyon katsayıları',
            'std_err': 'Standart hatalar',
            't_stats': 't-istatistikleri',
            'r_sq': 'R²',
            'p_values': 'p-değerleri',
        }
        caption_parts = [
            "Kanal ve zaman noktası başına doğrusal model",
            f"Formül: {result.design.spec.formula}",
            f"Terimler: {', '.join(result.term_names)}",
            f"Gösterilen: {quantity_names.get(quantity, quantity)}",
            f"Epoch sayısı: {result.design.n_rows} (serbestlik derecesi {result.df_resid})",
        ]

        if correction_method:
            correction_names = {
                'fdr': 'FDR düzeltmesi',
                'bonferroni': 'Bonferroni düzeltmesi',
                'holm': 'Holm düzeltmesi'
            }
            caption_parts.append(f"Düzeltme: {correction_names.get(correction_method, correction_method)}")

        return ". ".join(caption_parts) + "."


def export_analysis_results(
    result: EEGLMResult,
    output_dir: Union[str, Path] = "output",
    figures: Optional[List[plt.Figure]] = None,
    quantities: Sequence[str] = QUANTITIES,
    formats: Sequence[str] = ('svg',),
    metadata: Optional[Dict] = None,
    verbose: bool = False
) -> bool:
    """
    Model sonucunu toplu dışa aktar

    Her büyüklük için bir uzun tablo, figürler ve metadata yazılır.

    Parameters
    ----------
    result : EEGLMResult
        Model sonucu
    output_dir : str or Path
        Çıktı dizini
    figures : list, optional
        Figür listesi
    quantities : sequence
        Dışa aktarılacak büyüklükler
    formats : sequence
        Figür formatları
    metadata : dict, optional
        Metadata; verilmezse sonuçtan oluşturulur
    verbose : bool
        Konsol çıktısı

    Returns
    -------
    bool
        Tüm dosyalar yazıldıysa True
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    exporter = EEGExporter(verbose=verbose)
    success = True

    for quantity in quantities:
        success &= exporter.export_lm_table(result, output_dir / f"{quantity}.csv", quantity=quantity)

    for i, fig in enumerate(figures or []):
        for format in formats:
            success &= exporter.export_figure(fig, output_dir / f"figure_{i+1:02d}.{format}", format=format)

    if metadata is None:
        metadata = exporter.create_analysis_metadata(result)
    success &= exporter.export_metadata_file(metadata, output_dir / "analysis_metadata.json")

    return bool(success)
