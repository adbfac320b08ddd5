"""
Sinyal veri yapıları

Epoch'lanmış, ortalaması alınmış (evoked) ve zaman-frekans verileri için
ortak bir arayüz. Model uydurma ve çizim işlevleri yalnızca bu arayüzü
kullanır; her veri türü kendi tensör ve tablo dönüşümünü sağlar.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import ClassVar, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import RowCountMismatchError

CHAN_INFO_COLUMNS = ("electrode", "x", "y")


def _as_float_array(values, ndim: int, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim != ndim:
        raise ValueError(f"{name} {ndim} boyutlu olmalı, {arr.ndim} boyut verildi")
    return arr


def _check_chan_info(chan_info: Optional[pd.DataFrame]) -> Optional[pd.DataFrame]:
    if chan_info is None:
        return None
    missing = [c for c in CHAN_INFO_COLUMNS if c not in chan_info.columns]
    if missing:
        raise ValueError(f"Kanal bilgisi tablosunda eksik sütunlar: {', '.join(missing)}")
    return chan_info.reset_index(drop=True)


class EEGSignal(ABC):
    """
    Tüm sinyal türlerinin ortak arayüzü

    Alt sınıflar `signals`, `times`, `channels` ve `chan_info` alanlarını
    taşır. Zaman ekseni her zaman son eksendir.
    """

    kind: ClassVar[str] = ""
    value_name: ClassVar[str] = "amplitude"
    channel_axis: ClassVar[int] = 1

    signals: np.ndarray
    times: np.ndarray
    channels: List[str]
    chan_info: Optional[pd.DataFrame]

    @abstractmethod
    def signal_tensor(self) -> np.ndarray:
        """Model uydurma için (epoch x kanal x zaman) tensör"""

    @abstractmethod
    def predictor_table(self) -> pd.DataFrame:
        """Epoch başına bir satırlık prediktör tablosu"""

    @abstractmethod
    def butterfly_frame(self) -> pd.DataFrame:
        """Epoch'lar üzerinden ortalanmış uzun tablo (electrode, time, değer)"""

    @abstractmethod
    def as_long_frame(self) -> pd.DataFrame:
        """Tüm veriyi uzun tabloya dönüştür"""

    def _validate_axes(self):
        self.times = np.asarray(self.times, dtype=float)
        self.channels = [str(ch) for ch in self.channels]
        if self.signals.shape[-1] != len(self.times):
            raise ValueError(
                f"Zaman ekseni uzunluğu {len(self.times)}, sinyal {self.signals.shape[-1]} zaman noktası içeriyor"
            )
        if self.signals.shape[self.channel_axis] != len(self.channels):
            raise ValueError(
                f"{len(self.channels)} kanal adı verildi, sinyal {self.signals.shape[self.channel_axis]} kanal içeriyor"
            )
        self.chan_info = _check_chan_info(self.chan_info)

    @property
    def n_channels(self) -> int:
        return len(self.channels)

    @property
    def n_times(self) -> int:
        return len(self.times)

    def _time_mask(self, time_lim: Optional[Sequence[float]]) -> np.ndarray:
        if time_lim is None:
            return np.ones(self.n_times, dtype=bool)
        tmin, tmax = time_lim
        mask = (self.times >= tmin) & (self.times <= tmax)
        if not mask.any():
            raise ValueError(f"Seçilen aralıkta zaman noktası yok: {tmin}-{tmax}")
        return mask

    def select_times(self, time_lim: Sequence[float]):
        """Zaman aralığını seç (uçlar dahil)"""
        mask = self._time_mask(time_lim)
        return replace(self, signals=self.signals[..., mask], times=self.times[mask])

    def rm_baseline(self, time_lim: Optional[Sequence[float]] = None):
        """
        Baseline düzeltmesi

        Verilen aralıktaki ortalamayı her epoch/kanal için çıkarır;
        aralık verilmezse tüm zaman ekseninin ortalaması kullanılır.
        """
        mask = self._time_mask(time_lim)
        baseline = self.signals[..., mask].mean(axis=-1, keepdims=True)
        return replace(self, signals=self.signals - baseline)

    def select_channels(self, channels: Sequence[str]):
        """Kanal alt kümesi seç"""
        lookup = {ch.upper(): i for i, ch in enumerate(self.channels)}
        indices = []
        for ch in channels:
            if ch.upper() not in lookup:
                raise ValueError(f"Kanal bulunamadı: {ch}")
            indices.append(lookup[ch.upper()])

        chan_info = self.chan_info
        if chan_info is not None:
            selected = {self.channels[i].upper() for i in indices}
            chan_info = chan_info[chan_info["electrode"].str.upper().isin(selected)]

        return replace(
            self,
            signals=np.take(self.signals, indices, axis=self.channel_axis),
            channels=[self.channels[i] for i in indices],
            chan_info=chan_info,
        )


@dataclass(eq=False)
class EEGEvoked(EEGSignal):
    """Ortalaması alınmış veri (kanal x zaman)"""

    signals: np.ndarray
    times: np.ndarray
    channels: List[str]
    chan_info: Optional[pd.DataFrame] = None

    kind: ClassVar[str] = "evoked"
    channel_axis: ClassVar[int] = 0

    def __post_init__(self):
        self.signals = _as_float_array(self.signals, 2, "Evoked sinyali")
        self._validate_axes()

    def signal_tensor(self) -> np.ndarray:
        return self.signals[np.newaxis, :, :]

    def predictor_table(self) -> pd.DataFrame:
        return pd.DataFrame(index=pd.RangeIndex(1))

    def butterfly_frame(self) -> pd.DataFrame:
        return self.as_long_frame()

    def as_long_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "electrode": np.repeat(self.channels, self.n_times),
            "time": np.tile(self.times, self.n_channels),
            self.value_name: self.signals.ravel(),
        })


@dataclass(eq=False)
class EEGEpochs(EEGSignal):
    """
    Epoch'lanmış veri

    Attributes
    ----------
    signals : np.ndarray
        (epoch x kanal x zaman) genlikler
    times : np.ndarray
        Zaman noktaları
    channels : list
        Kanal adları
    epochs : pd.DataFrame
        Epoch başına bir satır (prediktörler, olay bilgileri)
    chan_info : pd.DataFrame, optional
        Elektrot koordinatları
    sfreq : float, optional
        Örnekleme frekansı
    """

    signals: np.ndarray
    times: np.ndarray
    channels: List[str]
    epochs: Optional[pd.DataFrame] = None
    chan_info: Optional[pd.DataFrame] = None
    sfreq: Optional[float] = None

    kind: ClassVar[str] = "epochs"

    def __post_init__(self):
        self.signals = _as_float_array(self.signals, 3, "Epoch sinyali")
        self._validate_axes()
        n_epochs = self.signals.shape[0]
        if self.epochs is None:
            self.epochs = pd.DataFrame({"epoch": np.arange(1, n_epochs + 1)})
        elif len(self.epochs) != n_epochs:
            raise RowCountMismatchError(len(self.epochs), n_epochs)
        self.epochs = self.epochs.reset_index(drop=True)

    @property
    def n_epochs(self) -> int:
        return self.signals.shape[0]

    def signal_tensor(self) -> np.ndarray:
        return self.signals

    def predictor_table(self) -> pd.DataFrame:
        return self.epochs

    def select_epochs(self, mask) -> "EEGEpochs":
        """Epoch alt kümesi seç; tensör ve tablo birlikte süzülür"""
        mask = np.asarray(mask)
        return replace(
            self,
            signals=self.signals[mask],
            epochs=self.epochs[mask] if mask.dtype == bool else self.epochs.iloc[mask],
        )

    def average(self) -> EEGEvoked:
        """Epoch'lar üzerinden ortalama"""
        return EEGEvoked(
            signals=self.signals.mean(axis=0),
            times=self.times.copy(),
            channels=list(self.channels),
            chan_info=self.chan_info,
        )

    def butterfly_frame(self) -> pd.DataFrame:
        return self.average().butterfly_frame()

    def epoch_labels(self) -> np.ndarray:
        if "epoch" in self.epochs.columns:
            return self.epochs["epoch"].to_numpy()
        return np.arange(1, self.n_epochs + 1)

    def as_long_frame(self) -> pd.DataFrame:
        n_epochs, n_channels, n_times = self.signals.shape
        return pd.DataFrame({
            "epoch": np.repeat(self.epoch_labels(), n_channels * n_times),
            "electrode": np.tile(np.repeat(self.channels, n_times), n_epochs),
            "time": np.tile(self.times, n_epochs * n_channels),
            self.value_name: self.signals.ravel(),
        })


@dataclass(eq=False)
class EEGTFR(EEGSignal):
    """Zaman-frekans gücü (epoch x kanal x frekans x zaman)"""

    signals: np.ndarray
    times: np.ndarray
    channels: List[str]
    freqs: np.ndarray = field(default_factory=lambda: np.array([]))
    epochs: Optional[pd.DataFrame] = None
    chan_info: Optional[pd.DataFrame] = None

    kind: ClassVar[str] = "tfr"
    value_name: ClassVar[str] = "power"

    def __post_init__(self):
        self.signals = _as_float_array(self.signals, 4, "Zaman-frekans verisi")
        self._validate_axes()
        self.freqs = np.asarray(self.freqs, dtype=float)
        if len(self.freqs) != self.signals.shape[2]:
            raise ValueError(
                f"{len(self.freqs)} frekans verildi, veri {self.signals.shape[2]} frekans içeriyor"
            )
        n_epochs = self.signals.shape[0]
        if self.epochs is None:
            self.epochs = pd.DataFrame({"epoch": np.arange(1, n_epochs + 1)})
        elif len(self.epochs) != n_epochs:
            raise RowCountMismatchError(len(self.epochs), n_epochs)
        self.epochs = self.epochs.reset_index(drop=True)

    def _freq_mask(self, freq_range: Optional[Tuple[float, float]]) -> np.ndarray:
        if freq_range is None:
            return np.ones(len(self.freqs), dtype=bool)
        fmin, fmax = freq_range
        mask = (self.freqs >= fmin) & (self.freqs <= fmax)
        if not mask.any():
            raise ValueError(f"Seçilen aralıkta frekans yok: {fmin}-{fmax} Hz")
        return mask

    def signal_tensor(self, freq_range: Optional[Tuple[float, float]] = None) -> np.ndarray:
        """Seçilen frekanslar üzerinden ortalanmış (epoch x kanal x zaman) güç"""
        return self.signals[:, :, self._freq_mask(freq_range), :].mean(axis=2)

    def predictor_table(self) -> pd.DataFrame:
        return self.epochs

    def butterfly_frame(self) -> pd.DataFrame:
        power = self.signal_tensor().mean(axis=0)
        return pd.DataFrame({
            "electrode": np.repeat(self.channels, self.n_times),
            "time": np.tile(self.times, self.n_channels),
            self.value_name: power.ravel(),
        })

    def as_long_frame(self) -> pd.DataFrame:
        n_epochs, n_channels, n_freqs, n_times = self.signals.shape
        if "epoch" in self.epochs.columns:
            labels = self.epochs["epoch"].to_numpy()
        else:
            labels = np.arange(1, n_epochs + 1)
        return pd.DataFrame({
            "epoch": np.repeat(labels, n_channels * n_freqs * n_times),
            "electrode": np.tile(np.repeat(self.channels, n_freqs * n_times), n_epochs),
            "frequency": np.tile(np.repeat(self.freqs, n_times), n_epochs * n_channels),
            "time": np.tile(self.times, n_epochs * n_channels * n_freqs),
            self.value_name: self.signals.ravel(),
        })
