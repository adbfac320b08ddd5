"""
Model sonuç modülü

Kitle tek değişkenli model sonuçlarını taşıyan değişmez nesne ve
tablo biçimine dönüştürme işlevleri.
"""

from dataclasses import dataclass, replace
from functools import cached_property
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multitest import multipletests

from .errors import UnknownQuantityError
from .formula import DesignMatrix

TERM_QUANTITIES = ("coefficients", "std_err", "t_stats", "p_values")
QUANTITIES = TERM_QUANTITIES[:3] + ("r_sq",) + TERM_QUANTITIES[3:]

CORRECTION_METHODS = {
    "fdr": "fdr_bh",
    "bonferroni": "bonferroni",
    "holm": "holm",
}


@dataclass(frozen=True, eq=False)
class EEGLMResult:
    """
    Kitle tek değişkenli doğrusal model sonucu

    Oluşturulduktan sonra değiştirilemez; tüm diziler salt okunurdur.

    Attributes
    ----------
    coefficients : np.ndarray
        Katsayılar (terim x kanal x zaman)
    std_err : np.ndarray
        Standart hatalar (terim x kanal x zaman)
    t_stats : np.ndarray
        t-istatistikleri (terim x kanal x zaman)
    r_sq : np.ndarray
        R² (kanal x zaman)
    channels : tuple of str
        Kanal adları
    times : np.ndarray
        Zaman noktaları
    design : DesignMatrix
        Uydurmada kullanılan tasarım matrisi
    df_resid : int
        Artık serbestlik derecesi (E - P)
    chan_info : pd.DataFrame, optional
        Elektrot koordinatları (electrode, x, y)
    """

    coefficients: np.ndarray
    std_err: np.ndarray
    t_stats: np.ndarray
    r_sq: np.ndarray
    channels: Tuple[str, ...]
    times: np.ndarray
    design: DesignMatrix
    df_resid: int
    chan_info: Optional[pd.DataFrame] = None

    def __post_init__(self):
        n_terms = self.design.n_columns
        expected = (n_terms, len(self.channels), len(self.times))
        for name in ("coefficients", "std_err", "t_stats"):
            arr = getattr(self, name)
            if arr.shape != expected:
                raise ValueError(f"{name} boyutu {arr.shape}, beklenen {expected}")
        if self.r_sq.shape != expected[1:]:
            raise ValueError(f"r_sq boyutu {self.r_sq.shape}, beklenen {expected[1:]}")

        object.__setattr__(self, "channels", tuple(self.channels))
        object.__setattr__(self, "times", np.array(self.times, dtype=float))
        for name in ("coefficients", "std_err", "t_stats", "r_sq", "times"):
            getattr(self, name).setflags(write=False)

    @property
    def term_names(self) -> Tuple[str, ...]:
        return self.design.column_names

    @property
    def n_terms(self) -> int:
        return len(self.term_names)

    @property
    def n_channels(self) -> int:
        return len(self.channels)

    @property
    def n_times(self) -> int:
        return len(self.times)

    @cached_property
    def p_values(self) -> np.ndarray:
        """İki yönlü p-değerleri (t dağılımı, E - P serbestlik derecesi)"""
        if self.df_resid <= 0:
            p = np.full(self.t_stats.shape, np.nan)
        else:
            p = 2.0 * stats.t.sf(np.abs(self.t_stats), self.df_resid)
        p.setflags(write=False)
        return p

    def get(self, quantity: str) -> np.ndarray:
        """İsimle bir büyüklüğün dizisini döndür"""
        if quantity not in QUANTITIES:
            raise UnknownQuantityError(
                f"Bilinmeyen büyüklük: {quantity} (geçerli: {', '.join(QUANTITIES)})"
            )
        return getattr(self, quantity)

    def corrected_p_values(self, method: str = "fdr", alpha: float = 0.05) -> np.ndarray:
        """
        Çoklu karşılaştırma düzeltmesi

        Her terim için tüm kanal x zaman noktaları birlikte düzeltilir.
        NaN p-değerleri düzeltmeye katılmaz ve NaN kalır.

        Parameters
        ----------
        method : str
            Düzeltme metodu ('fdr', 'bonferroni', 'holm')
        alpha : float
            Anlamlılık düzeyi

        Returns
        -------
        np.ndarray
            Düzeltilmiş p-değerleri (terim x kanal x zaman)
        """
        if method not in CORRECTION_METHODS:
            raise ValueError(f"Desteklenmeyen düzeltme metodu: {method}")

        corrected = np.full(self.p_values.shape, np.nan)
        for i in range(self.n_terms):
            p = self.p_values[i].ravel()
            finite = np.isfinite(p)
            if not finite.any():
                continue
            _, p_corr, _, _ = multipletests(p[finite], alpha=alpha, method=CORRECTION_METHODS[method])
            flat = corrected[i].reshape(-1)
            flat[finite] = p_corr
            corrected[i] = flat.reshape(self.n_channels, self.n_times)
        return corrected

    def _term_indices(self, terms: Optional[Sequence[str]]) -> List[int]:
        if terms is None:
            return list(range(self.n_terms))
        indices = []
        for term in terms:
            if term not in self.term_names:
                raise UnknownQuantityError(
                    f"Bilinmeyen terim: {term} (mevcut: {', '.join(self.term_names)})"
                )
            indices.append(self.term_names.index(term))
        return indices

    def as_dataframe(
        self,
        quantity: str = "coefficients",
        long: bool = True,
        terms: Optional[Sequence[str]] = None
    ) -> Union[pd.DataFrame, Dict[str, pd.DataFrame]]:
        """
        Sonucu tablo biçimine dönüştür

        Parameters
        ----------
        quantity : str
            'coefficients', 'std_err', 't_stats', 'r_sq' veya 'p_values'
        long : bool
            True ise tek uzun tablo (electrode, time, [term,] değer);
            False ise her terim için satırları zaman, sütunları kanal
            olan geniş tablolar sözlüğü
        terms : sequence, optional
            Yalnızca bu terimler

        Returns
        -------
        pd.DataFrame or dict
            Uzun tablo veya terim -> geniş tablo sözlüğü
        """
        values = self.get(quantity)

        if quantity == "r_sq":
            if long:
                chan_idx, time_idx = np.meshgrid(
                    np.arange(self.n_channels), np.arange(self.n_times), indexing="ij"
                )
                return pd.DataFrame({
                    "electrode": np.asarray(self.channels, dtype=object)[chan_idx.ravel()],
                    "time": self.times[time_idx.ravel()],
                    "r_sq": values.ravel(),
                })
            return {"r_sq": self._wide_frame(values)}

        indices = self._term_indices(terms)
        selected = values[indices]
        if not long:
            return {self.term_names[i]: self._wide_frame(values[i]) for i in indices}

        term_idx, chan_idx, time_idx = np.meshgrid(
            np.arange(len(indices)),
            np.arange(self.n_channels),
            np.arange(self.n_times),
            indexing="ij",
        )
        term_labels = np.asarray([self.term_names[i] for i in indices], dtype=object)
        return pd.DataFrame({
            "electrode": np.asarray(self.channels, dtype=object)[chan_idx.ravel()],
            "time": self.times[time_idx.ravel()],
            "term": term_labels[term_idx.ravel()],
            quantity: selected.ravel(),
        })

    def _wide_frame(self, values: np.ndarray) -> pd.DataFrame:
        frame = pd.DataFrame(
            np.array(values).T,
            index=pd.Index(self.times, name="time"),
            columns=list(self.channels),
        )
        return frame

    def butterfly_frame(self, quantity: str = "coefficients") -> pd.DataFrame:
        """Kelebek grafiği için uzun tablo"""
        return self.as_dataframe(quantity, long=True)

    def select_times(self, time_lim: Sequence[float]) -> "EEGLMResult":
        """Zaman aralığını seç, yeni sonuç döndür"""
        tmin, tmax = time_lim
        mask = (self.times >= tmin) & (self.times <= tmax)
        if not mask.any():
            raise ValueError(f"Seçilen aralıkta zaman noktası yok: {tmin}-{tmax}")
        return replace(
            self,
            coefficients=self.coefficients[:, :, mask].copy(),
            std_err=self.std_err[:, :, mask].copy(),
            t_stats=self.t_stats[:, :, mask].copy(),
            r_sq=self.r_sq[:, mask].copy(),
            times=self.times[mask].copy(),
        )

    def summary(self) -> pd.DataFrame:
        """Her terim için en büyük |t| değerinin yeri ve büyüklüğü"""
        rows = []
        for i, term in enumerate(self.term_names):
            abs_t = np.abs(self.t_stats[i])
            row = {
                "term": term,
                "peak_t": np.nan,
                "electrode": None,
                "time": np.nan,
                "coefficient": np.nan,
                "std_err": np.nan,
            }
            if np.isfinite(abs_t).any():
                masked = np.where(np.isfinite(abs_t), abs_t, -np.inf)
                ch, tp = np.unravel_index(np.argmax(masked), abs_t.shape)
                row.update({
                    "peak_t": self.t_stats[i, ch, tp],
                    "electrode": self.channels[ch],
                    "time": self.times[tp],
                    "coefficient": self.coefficients[i, ch, tp],
                    "std_err": self.std_err[i, ch, tp],
                })
            rows.append(row)
        return pd.DataFrame(rows)

    def __repr__(self) -> str:
        return (
            f"EEGLMResult(formula={self.design.spec.formula!r}, terms={list(self.term_names)}, "
            f"channels={self.n_channels}, times={self.n_times}, df_resid={self.df_resid})"
        )
