"""
Doğrusal model modülü

Her (kanal, zaman noktası) dilimi için ayrı bir en küçük kareler modeli
uydurur. Tüm dilimler aynı tasarım matrisini paylaştığı için izdüşüm
operatörü `(X'X)^-1 X'` bir kez hesaplanır; dilim başına yalnızca
matris-vektör çarpımı yapılır.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from rich.console import Console
from scipy import linalg

from .containers import EEGSignal, EEGTFR
from .errors import EEGModelError, SingularDesignError
from .formula import (
    DesignMatrix,
    ModelSpec,
    build_design_matrix,
    parse_formula,
    validate_predictors,
)
from .results import EEGLMResult

console = Console()

# Bu değerin üzerindeki koşul sayıları tekil kabul edilir
DEFAULT_MAX_CONDITION = 1e12


@dataclass(frozen=True)
class ProjectionOperator:
    """
    Paylaşılan izdüşüm operatörü

    Attributes
    ----------
    design : np.ndarray
        Tasarım matrisi X (E x P)
    pinv : np.ndarray
        QR ayrışımından `(X'X)^-1 X'` (P x E)
    xtx_inv_diag : np.ndarray
        `diag((X'X)^-1)` (P)
    rank : int
        Sayısal rank
    condition_number : float
        En büyük / en küçük tekil değer oranı
    """

    design: np.ndarray
    pinv: np.ndarray
    xtx_inv_diag: np.ndarray
    rank: int
    condition_number: float

    @property
    def n_obs(self) -> int:
        return self.design.shape[0]

    @property
    def n_params(self) -> int:
        return self.design.shape[1]

    @property
    def df_resid(self) -> int:
        return self.n_obs - self.n_params

    @classmethod
    def from_design(
        cls,
        design: np.ndarray,
        max_condition: float = DEFAULT_MAX_CONDITION
    ) -> "ProjectionOperator":
        """
        Tasarım matrisini ayrıştır

        Rank eksikliği veya `max_condition` üzerindeki koşul sayısı
        `SingularDesignError` fırlatır.
        """
        X = np.array(design, dtype=float)
        if X.ndim != 2:
            raise EEGModelError(f"Tasarım matrisi 2 boyutlu olmalı, {X.ndim} boyut verildi")
        n_obs, n_params = X.shape
        if n_params == 0:
            raise SingularDesignError(0, 0, np.inf)
        if not np.all(np.isfinite(X)):
            raise EEGModelError("Tasarım matrisi sonlu olmayan değerler içeriyor")

        singular_values = linalg.svdvals(X)
        tol = singular_values.max(initial=0.0) * max(n_obs, n_params) * np.finfo(float).eps
        rank = int(np.sum(singular_values > tol))
        smallest = singular_values.min() if rank == n_params else 0.0
        condition_number = singular_values.max() / smallest if smallest > 0 else np.inf

        if rank < n_params or condition_number > max_condition:
            raise SingularDesignError(rank, n_params, condition_number)

        q, r = linalg.qr(X, mode="economic")
        r_inv = linalg.solve_triangular(r, np.eye(n_params))
        pinv = r_inv @ q.T
        # diag(R^-1 R^-T)
        xtx_inv_diag = np.sum(r_inv ** 2, axis=1)

        for arr in (X, pinv, xtx_inv_diag):
            arr.setflags(write=False)

        return cls(
            design=X,
            pinv=pinv,
            xtx_inv_diag=xtx_inv_diag,
            rank=rank,
            condition_number=float(condition_number),
        )


def fit_slices(operator: ProjectionOperator, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Dilimleri uydur

    Parameters
    ----------
    operator : ProjectionOperator
        Paylaşılan operatör
    y : np.ndarray
        Yanıtlar (E x N), her sütun bir dilim

    Returns
    -------
    tuple
        Katsayılar (P x N), artık kareler toplamı (N), toplam kareler toplamı (N)
    """
    y = np.asarray(y, dtype=float)
    beta = operator.pinv @ y
    resid = y - operator.design @ beta
    rss = np.einsum("ij,ij->j", resid, resid)

    centered = y - y.mean(axis=0)
    tss = np.einsum("ij,ij->j", centered, centered)
    # Sabit yanıtta yuvarlama artığını sıfırla
    tss[tss <= np.finfo(float).eps * np.einsum("ij,ij->j", y, y)] = 0.0
    return beta, rss, tss


def extract_statistics(
    operator: ProjectionOperator,
    beta: np.ndarray,
    rss: np.ndarray,
    tss: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Standart hata, t-istatistiği ve R² hesapla

    Artık serbestlik derecesi sıfır veya negatifse standart hata ve t
    tanımsızdır (NaN). Sabit yanıtta (TSS = 0) R² NaN olur.

    Returns
    -------
    tuple
        std_err (P x N), t_stats (P x N), r_sq (N)
    """
    df = operator.df_resid
    with np.errstate(divide="ignore", invalid="ignore"):
        if df > 0:
            sigma2 = rss / df
            std_err = np.sqrt(operator.xtx_inv_diag[:, np.newaxis] * sigma2[np.newaxis, :])
            t_stats = beta / std_err
        else:
            std_err = np.full(beta.shape, np.nan)
            t_stats = np.full(beta.shape, np.nan)
        r_sq = np.where(tss > 0, 1.0 - rss / tss, np.nan)
    return std_err, t_stats, r_sq


def _fit_channel(operator: ProjectionOperator, y: np.ndarray):
    beta, rss, tss = fit_slices(operator, y)
    std_err, t_stats, r_sq = extract_statistics(operator, beta, rss, tss)
    return beta, std_err, t_stats, r_sq


def fit_eeg_lm(
    data: Union[EEGSignal, np.ndarray],
    formula: Union[str, ModelSpec],
    predictors: Optional[pd.DataFrame] = None,
    times: Optional[Sequence[float]] = None,
    channels: Optional[Sequence[str]] = None,
    freq_range: Optional[Tuple[float, float]] = None,
    n_jobs: int = 1,
    max_condition: float = DEFAULT_MAX_CONDITION,
    verbose: bool = False
) -> EEGLMResult:
    """
    Kanal x zaman noktası başına doğrusal model uydur

    Parameters
    ----------
    data : EEGSignal or np.ndarray
        Sinyal nesnesi veya (epoch x kanal x zaman) dizisi
    formula : str or ModelSpec
        Model formülü, örn. `~ kosul + scale(rt)`
    predictors : pd.DataFrame, optional
        Epoch başına bir satır; verilmezse sinyal nesnesinin epoch tablosu
    times : sequence, optional
        Zaman noktaları (dizi girdisi için)
    channels : sequence, optional
        Kanal adları (dizi girdisi için)
    freq_range : tuple, optional
        Zaman-frekans verisinde ortalaması alınacak frekans aralığı
    n_jobs : int
        Paralel iş sayısı (kanallar üzerinden)
    max_condition : float
        Tekillik eşiği
    verbose : bool
        Konsol çıktısı

    Returns
    -------
    EEGLMResult
        Katsayılar, standart hatalar, t-istatistikleri ve R²
    """
    chan_info = None
    if isinstance(data, EEGSignal):
        if times is not None or channels is not None:
            raise ValueError("times ve channels yalnızca dizi girdisi için verilir; sinyal nesnesi kendi eksenlerini taşır")
        if isinstance(data, EEGTFR):
            tensor = data.signal_tensor(freq_range=freq_range)
        elif freq_range is not None:
            raise ValueError(f"Frekans aralığı yalnızca zaman-frekans verisi için geçerli ({data.kind})")
        else:
            tensor = data.signal_tensor()
        if predictors is None:
            predictors = data.predictor_table()
        times = data.times
        channels = data.channels
        chan_info = data.chan_info
    else:
        tensor = np.asarray(data, dtype=float)
        if tensor.ndim != 3:
            raise ValueError(f"Sinyal tensörü 3 boyutlu olmalı (epoch x kanal x zaman), {tensor.ndim} boyut verildi")

    n_epochs, n_channels, n_times = tensor.shape
    times = np.arange(n_times, dtype=float) if times is None else np.asarray(times, dtype=float)
    channels = [f"Ch{i}" for i in range(n_channels)] if channels is None else list(channels)
    if len(times) != n_times:
        raise ValueError(f"Zaman ekseni uzunluğu {len(times)}, tensör {n_times} zaman noktası içeriyor")
    if len(channels) != n_channels:
        raise ValueError(f"{len(channels)} kanal adı verildi, tensör {n_channels} kanal içeriyor")
    if predictors is None:
        predictors = pd.DataFrame(index=pd.RangeIndex(n_epochs))

    if verbose:
        console.print(
            f"[blue]Model uyduruluyor: {formula if isinstance(formula, str) else formula.formula} "
            f"({n_channels} kanal x {n_times} zaman noktası)[/blue]"
        )

    spec = parse_formula(formula) if isinstance(formula, str) else formula
    validate_predictors(spec, predictors, n_epochs)

    missing_signal = np.isnan(tensor).any(axis=(1, 2))
    design = build_design_matrix(spec, predictors, n_epochs=n_epochs, exclude=missing_signal)
    operator = ProjectionOperator.from_design(design.values, max_condition=max_condition)

    if verbose and design.n_excluded:
        console.print(f"[yellow]{design.n_excluded} epoch eksik değer nedeniyle dışlandı[/yellow]")

    kept = tensor[design.row_mask]
    fits = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_fit_channel)(operator, kept[:, ch, :]) for ch in range(n_channels)
    )

    n_params = operator.n_params
    coefficients = np.empty((n_params, n_channels, n_times))
    std_err = np.empty((n_params, n_channels, n_times))
    t_stats = np.empty((n_params, n_channels, n_times))
    r_sq = np.empty((n_channels, n_times))
    for ch, (beta, se, t, r2) in enumerate(fits):
        coefficients[:, ch, :] = beta
        std_err[:, ch, :] = se
        t_stats[:, ch, :] = t
        r_sq[ch, :] = r2

    result = EEGLMResult(
        coefficients=coefficients,
        std_err=std_err,
        t_stats=t_stats,
        r_sq=r_sq,
        channels=tuple(channels),
        times=times,
        design=design,
        df_resid=operator.df_resid,
        chan_info=chan_info,
    )

    if verbose:
        console.print(
            f"[green]Model uyduruldu: {n_params} terim, {design.n_rows} epoch, "
            f"serbestlik derecesi {operator.df_resid}[/green]"
        )
    return result


class EEGLinearModel:
    """EEG kitle tek değişkenli doğrusal model sınıfı"""

    def __init__(
        self,
        formula: Union[str, ModelSpec],
        n_jobs: int = 1,
        max_condition: float = DEFAULT_MAX_CONDITION,
        verbose: bool = True
    ):
        self.formula = formula
        self.n_jobs = n_jobs
        self.max_condition = max_condition
        self.verbose = verbose
        self.result_: Optional[EEGLMResult] = None

    def fit(
        self,
        data: Union[EEGSignal, np.ndarray],
        predictors: Optional[pd.DataFrame] = None,
        **kwargs
    ) -> EEGLMResult:
        """
        Modeli uydur

        Parameters
        ----------
        data : EEGSignal or np.ndarray
            Sinyal verisi
        predictors : pd.DataFrame, optional
            Prediktör tablosu
        **kwargs
            `fit_eeg_lm` parametreleri (times, channels, freq_range)

        Returns
        -------
        EEGLMResult
            Model sonucu
        """
        self.result_ = fit_eeg_lm(
            data,
            self.formula,
            predictors=predictors,
            n_jobs=self.n_jobs,
            max_condition=self.max_condition,
            verbose=self.verbose,
            **kwargs
        )
        return self.result_

    def design_matrix(self, predictors: pd.DataFrame) -> DesignMatrix:
        """Uydurmadan tasarım matrisini oluştur"""
        return build_design_matrix(self.formula, predictors)

    @property
    def term_names(self) -> List[str]:
        if self.result_ is None:
            raise RuntimeError("Model henüz uydurulmadı")
        return list(self.result_.term_names)
