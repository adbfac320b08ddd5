"""
Görselleştirme modülü

Kelebek grafikleri, ERP görüntüleri, ERP raster grafikleri ve
topografik kanal sıralaması.
"""

from typing import Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from rich.console import Console

from .containers import EEGEpochs, EEGEvoked, EEGSignal, EEGTFR
from .errors import UnknownQuantityError
from .results import TERM_QUANTITIES, EEGLMResult

console = Console()

QUANTITY_LABELS = {
    "coefficients": "Genlik (µV)",
    "std_err": "Std. hata (µV)",
    "t_stats": "t-istatistiği",
    "r_sq": "r²",
    "p_values": "p-değeri",
}

VALUE_LABELS = {
    "amplitude": "Genlik (µV)",
    "power": "Güç",
}

ERP_IMAGE_COLUMNS = ("electrode", "time", "amplitude", "epoch")

# Orta hat eşiği, en büyük |x| değerine oranla
MIDLINE_FRACTION = 0.05


def arrange_chans(
    chan_info: pd.DataFrame,
    sig_names: Sequence[str],
    midline_tol: Optional[float] = None
) -> np.ndarray:
    """
    Kanalları anatomik sıraya diz

    Sol yarıküre (x < 0) arkadan öne (y artan),
    ardından orta hat (x = 0) önden arkaya (y azalan), ardından sağ
    yarıküre (y artan). Konumu bilinmeyen kanallar özgün sıralarıyla
    sona eklenir. Eşleştirme büyük/küçük harf duyarsızdır.

    Parameters
    ----------
    chan_info : pd.DataFrame
        `electrode`, `x`, `y` sütunları
    sig_names : sequence
        Sinyaldeki kanal adları
    midline_tol : float, optional
        |x| bu değerden küçükse orta hat sayılır; varsayılan en büyük
        |x| değerinin %5'i

    Returns
    -------
    np.ndarray
        `sig_names` içine indeksler
    """
    x = chan_info["x"].to_numpy(dtype=float)
    y = chan_info["y"].to_numpy(dtype=float)
    labels = chan_info["electrode"].astype(str).to_numpy()

    if midline_tol is None:
        finite = np.abs(x[np.isfinite(x)])
        midline_tol = MIDLINE_FRACTION * finite.max() if finite.size else 0.0

    midline = np.abs(x) <= midline_tol
    left = (x < 0) & ~midline
    right = (x > 0) & ~midline

    def ordered(mask, descending=False):
        keys = -y[mask] if descending else y[mask]
        return list(labels[mask][np.argsort(keys, kind="stable")])

    all_labels = ordered(left) + ordered(midline, descending=True) + ordered(right)

    upper_names = [name.upper() for name in sig_names]
    order = []
    for label in all_labels:
        if label.upper() in upper_names:
            idx = upper_names.index(label.upper())
            if idx not in order:
                order.append(idx)
    order.extend(i for i in range(len(sig_names)) if i not in order)
    return np.asarray(order, dtype=int)


def _smooth_trials(image: np.ndarray, smoothing: int) -> np.ndarray:
    """Ardışık denemeler üzerinde ortalanmış hareketli ortalama (kenarlar NaN)"""
    if smoothing is None or smoothing <= 1:
        return image
    return pd.DataFrame(image).rolling(window=int(smoothing), center=True).mean().to_numpy()


def _symmetric_clim(values: np.ndarray, clim: Optional[Sequence[float]]) -> Tuple[float, float]:
    if clim is not None and len(clim) == 2:
        return float(clim[0]), float(clim[1])
    limit = float(np.nanmax(np.abs(values)))
    return -limit, limit


class EEGVisualizer:
    """EEG ve model sonucu görselleştirme sınıfı"""

    def __init__(self, verbose: bool = True):
        self.verbose = verbose
        self.fig = None

    def plot_butterfly(
        self,
        data: Union[EEGSignal, EEGLMResult, pd.DataFrame],
        time_lim: Optional[Sequence[float]] = None,
        baseline: Optional[Sequence[float]] = None,
        legend: bool = True,
        quantity: str = "coefficients",
        title: Optional[str] = None,
        figsize: Optional[Tuple[float, float]] = None
    ) -> plt.Figure:
        """
        Kelebek grafiği çiz

        Her elektrot için bir çizgi. Epoch'lanmış veride önce ortalama
        alınır; model sonuçlarında her terim ayrı panelde çizilir.

        Parameters
        ----------
        data : EEGSignal, EEGLMResult or pd.DataFrame
            Çizilecek veri
        time_lim : sequence, optional
            Zaman aralığı, örn. (-0.1, 0.4)
        baseline : sequence, optional
            Baseline aralığı (model sonuçlarında kullanılmaz)
        legend : bool
            Gösterge ekle
        quantity : str
            Model sonuçları için çizilecek büyüklük
        title : str, optional
            Başlık
        figsize : tuple, optional
            Figür boyutu

        Returns
        -------
        plt.Figure
            Çizilen figür
        """
        if self.verbose:
            console.print("[blue]Kelebek grafiği çiziliyor...[/blue]")

        if isinstance(data, EEGLMResult):
            if time_lim is not None:
                data = data.select_times(time_lim)
            frame = data.butterfly_frame(quantity)
            value_col = quantity
            ylabel = QUANTITY_LABELS[quantity]
        elif isinstance(data, EEGSignal):
            if time_lim is not None:
                data = data.select_times(time_lim)
            if baseline is not None:
                data = data.rm_baseline(baseline)
            frame = data.butterfly_frame()
            value_col = data.value_name
            ylabel = VALUE_LABELS[value_col]
        elif isinstance(data, pd.DataFrame):
            missing = [c for c in ("electrode", "time", "amplitude") if c not in data.columns]
            if missing:
                raise ValueError(f"Eksik sütunlar: {', '.join(missing)}")
            frame = data.groupby(["time", "electrode"], sort=False, as_index=False)["amplitude"].mean()
            if time_lim is not None:
                frame = frame[(frame["time"] >= time_lim[0]) & (frame["time"] <= time_lim[1])]
            if baseline is not None:
                in_base = (frame["time"] >= baseline[0]) & (frame["time"] <= baseline[1])
                base = frame[in_base].groupby("electrode")["amplitude"].mean()
                frame = frame.assign(amplitude=frame["amplitude"] - frame["electrode"].map(base))
            value_col = "amplitude"
            ylabel = VALUE_LABELS["amplitude"]
        else:
            raise TypeError(f"Kelebek grafiği desteklenmiyor: {type(data).__name__}")

        panels = list(pd.unique(frame["term"])) if "term" in frame.columns else [None]
        electrodes = list(pd.unique(frame["electrode"]))
        palette = dict(zip(electrodes, sns.color_palette("husl", len(electrodes))))

        if figsize is None:
            figsize = (10, 3.5 * len(panels))
        fig, axes = plt.subplots(len(panels), 1, figsize=figsize, sharex=True, squeeze=False)

        for ax, panel in zip(axes[:, 0], panels):
            panel_frame = frame if panel is None else frame[frame["term"] == panel]
            for electrode, elec_frame in panel_frame.groupby("electrode", sort=False):
                elec_frame = elec_frame.sort_values("time")
                ax.plot(
                    elec_frame["time"],
                    elec_frame[value_col],
                    color=palette[electrode],
                    alpha=0.5,
                    linewidth=1,
                    label=electrode,
                )
            ax.axhline(0, color="k", linewidth=0.5)
            ax.axvline(0, color="k", linewidth=0.5)
            ax.set_ylabel(ylabel)
            if panel is not None:
                ax.set_title(panel, fontsize=11, fontweight="bold")
            ax.spines["top"].set_visible(False)
            ax.spines["right"].set_visible(False)
            ax.margins(x=0)

        axes[-1, 0].set_xlabel("Zaman (s)")

        if legend:
            handles, labels = axes[0, 0].get_legend_handles_labels()
            leg = fig.legend(handles, labels, loc="center right", fontsize=8, frameon=False)
            for line in leg.get_lines():
                line.set_alpha(1)
            fig.subplots_adjust(right=0.85)

        if title:
            fig.suptitle(title, fontsize=14, fontweight="bold")

        self.fig = fig
        return fig

    def erp_image(
        self,
        data: Union[EEGEpochs, EEGTFR, pd.DataFrame],
        electrode: str = "Cz",
        time_lim: Optional[Sequence[float]] = None,
        smoothing: int = 10,
        clim: Optional[Sequence[float]] = None,
        interpolate: bool = False,
        cmap: str = "RdBu_r"
    ) -> plt.Figure:
        """
        Tek elektrot için ERP görüntüsü çiz

        Denemeler arası örüntüleri belirginleştirmek için ardışık
        `smoothing` deneme üzerinden ortalanmış hareketli ortalama alınır.

        Parameters
        ----------
        data : EEGEpochs, EEGTFR or pd.DataFrame
            Epoch'lanmış veri
        electrode : str
            Elektrot adı
        time_lim : sequence, optional
            Zaman aralığı
        smoothing : int
            Yumuşatılacak deneme sayısı
        clim : sequence, optional
            Renk aralığı (min, max); verilmezse simetrik en büyük mutlak değer
        interpolate : bool
            Görüntü enterpolasyonu
        cmap : str
            Renk haritası

        Returns
        -------
        plt.Figure
            Çizilen figür
        """
        if self.verbose:
            console.print(f"[blue]ERP görüntüsü çiziliyor: {electrode}[/blue]")

        if isinstance(data, pd.DataFrame):
            missing = [c for c in ERP_IMAGE_COLUMNS if c not in data.columns]
            if missing:
                raise ValueError(f"Gerekli sütunlar eksik: {', '.join(missing)}")
            frame = data
            if time_lim is not None:
                frame = frame[(frame["time"] >= time_lim[0]) & (frame["time"] <= time_lim[1])]
            if electrode not in set(frame["electrode"]):
                raise ValueError(f"Elektrot bulunamadı: {electrode}")
            frame = frame[frame["electrode"] == electrode]
            image_frame = frame.pivot_table(index="epoch", columns="time", values="amplitude", aggfunc="mean")
            image = image_frame.to_numpy()
            times = image_frame.columns.to_numpy(dtype=float)
            units = "Genlik"
        elif isinstance(data, (EEGEpochs, EEGTFR)):
            if electrode not in data.channels:
                raise ValueError(f"Belirtilen elektrot bulunamadı: {electrode}")
            if time_lim is not None:
                data = data.select_times(time_lim)
            idx = data.channels.index(electrode)
            image = data.signal_tensor()[:, idx, :]
            times = data.times
            units = "Güç" if isinstance(data, EEGTFR) else "Genlik"
        elif isinstance(data, EEGEvoked):
            raise TypeError("ERP görüntüsü epoch'lanmış veri gerektirir")
        else:
            raise TypeError(f"ERP görüntüsü desteklenmiyor: {type(data).__name__}")

        smoothed = _smooth_trials(image, smoothing)
        vmin, vmax = _symmetric_clim(smoothed, clim)
        n_epochs = smoothed.shape[0]

        fig, ax = plt.subplots(1, 1, figsize=(8, 6))
        im = ax.imshow(
            smoothed,
            aspect="auto",
            origin="lower",
            extent=[times[0], times[-1], 0.5, n_epochs + 0.5],
            cmap=cmap,
            vmin=vmin,
            vmax=vmax,
            interpolation="bilinear" if interpolate else "nearest",
        )
        ax.axvline(0, color="k", linestyle="--", linewidth=1)
        ax.set_xlabel("Zaman (s)")
        ax.set_ylabel("Epoch numarası")
        ax.set_title(f"{electrode} elektrodu için ERP görüntüsü", fontsize=12, fontweight="bold")

        cbar = fig.colorbar(im, ax=ax, shrink=0.8)
        cbar.set_label(units, fontsize=10)

        self.fig = fig
        return fig

    def erp_raster(
        self,
        data: Union[EEGEpochs, EEGEvoked],
        anat_order: bool = True,
        time_lim: Optional[Sequence[float]] = None,
        clim: Optional[Sequence[float]] = None,
        interpolate: bool = False,
        cmap: str = "RdBu_r"
    ) -> plt.Figure:
        """
        Tüm kanalların ERP'sini tek görüntüde çiz

        Kanal konumları varsa satırlar `arrange_chans` ile anatomik
        sıraya dizilir, yoksa özgün sıra korunur.
        """
        if self.verbose:
            console.print("[blue]ERP raster grafiği çiziliyor...[/blue]")

        if not isinstance(data, (EEGEpochs, EEGEvoked)):
            raise TypeError(f"ERP raster desteklenmiyor: {type(data).__name__}")

        if time_lim is not None:
            data = data.select_times(time_lim)
        evoked = data.average() if isinstance(data, EEGEpochs) else data

        signals = evoked.signals
        channels = list(evoked.channels)
        if anat_order and evoked.chan_info is not None:
            order = arrange_chans(evoked.chan_info, channels)
            signals = signals[order]
            channels = [channels[i] for i in order]

        if clim is None or len(clim) != 2:
            clim = (float(np.nanmin(signals)), float(np.nanmax(signals)))

        fig, ax = plt.subplots(1, 1, figsize=(10, max(4, 0.2 * len(channels))))
        im = ax.imshow(
            signals,
            aspect="auto",
            origin="lower",
            extent=[evoked.times[0], evoked.times[-1], -0.5, len(channels) - 0.5],
            cmap=cmap,
            vmin=clim[0],
            vmax=clim[1],
            interpolation="bilinear" if interpolate else "nearest",
        )
        ax.set_yticks(np.arange(len(channels)))
        ax.set_yticklabels(channels, fontsize=7)
        ax.axvline(0, color="k", linestyle="--", linewidth=2)
        ax.set_xlabel("Zaman (s)")
        ax.set_ylabel("Elektrot")

        cbar = fig.colorbar(im, ax=ax, shrink=0.8)
        cbar.set_label(VALUE_LABELS["amplitude"], fontsize=10)

        self.fig = fig
        return fig

    def plot_term_raster(
        self,
        result: EEGLMResult,
        term: str,
        quantity: str = "t_stats",
        anat_order: bool = True,
        clim: Optional[Sequence[float]] = None,
        cmap: str = "RdBu_r"
    ) -> plt.Figure:
        """Bir model teriminin kanal x zaman görüntüsü (r_sq terim başına değildir)"""
        if quantity not in TERM_QUANTITIES:
            raise UnknownQuantityError(
                f"Terim büyüklüğü bekleniyordu: {quantity} (geçerli: {', '.join(TERM_QUANTITIES)})"
            )
        if self.verbose:
            console.print(f"[blue]Terim görüntüsü çiziliyor: {term} ({quantity})[/blue]")

        wide = result.as_dataframe(quantity, long=False, terms=[term])[term]
        values = wide.to_numpy().T
        channels = list(result.channels)
        if anat_order and result.chan_info is not None:
            order = arrange_chans(result.chan_info, channels)
            values = values[order]
            channels = [channels[i] for i in order]

        vmin, vmax = _symmetric_clim(values, clim)

        fig, ax = plt.subplots(1, 1, figsize=(10, max(4, 0.2 * len(channels))))
        im = ax.imshow(
            values,
            aspect="auto",
            origin="lower",
            extent=[result.times[0], result.times[-1], -0.5, len(channels) - 0.5],
            cmap=cmap,
            vmin=vmin,
            vmax=vmax,
            interpolation="nearest",
        )
        ax.set_yticks(np.arange(len(channels)))
        ax.set_yticklabels(channels, fontsize=7)
        ax.axvline(0, color="k", linestyle="--", linewidth=1)
        ax.set_xlabel("Zaman (s)")
        ax.set_title(term, fontsize=12, fontweight="bold")

        cbar = fig.colorbar(im, ax=ax, shrink=0.8)
        cbar.set_label(QUANTITY_LABELS[quantity], fontsize=10)

        self.fig = fig
        return fig
