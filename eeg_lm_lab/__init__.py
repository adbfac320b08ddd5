"""
EEG LM Lab - EEG verilerinde kitle tek değişkenli doğrusal modeller

Bu paket epoch'lanmış EEG verisinde her kanal ve zaman noktası için ayrı
bir en küçük kareler modeli uydurur. Formülden tasarım matrisi oluşturur,
katsayı, standart hata, t-istatistiği ve R² dizilerini tek bir sonuç
nesnesinde toplar, tablo ve figür olarak dışa aktarır.

Ana modüller:
- formula: Formül ayrıştırıcı ve tasarım matrisi
- glm: Model uydurma
- results: Sonuç nesnesi ve tablo dönüşümleri
- containers: Epoch, evoked ve zaman-frekans veri yapıları
- io: Veri girişi (FIF, EEGLAB, uzun tablolar)
- viz: Görselleştirme
- export: Dışa aktarma
- config: Konfigürasyon
- cli: Komut satırı arayüzü
"""

__version__ = "0.1.0"
__author__ = "EEG LM Lab"

from . import errors
from . import formula
from . import containers
from . import results
from . import glm
from . import io
from . import viz
from . import export
from . import config

from .containers import EEGEpochs, EEGEvoked, EEGSignal, EEGTFR
from .errors import (
    EEGModelError,
    FormulaSyntaxError,
    RowCountMismatchError,
    SingularDesignError,
    UnknownPredictorError,
    UnknownQuantityError,
)
from .formula import build_design_matrix, parse_formula
from .glm import EEGLinearModel, fit_eeg_lm
from .results import EEGLMResult

__all__ = [
    "errors",
    "formula",
    "containers",
    "results",
    "glm",
    "io",
    "viz",
    "export",
    "config",
    "EEGEpochs",
    "EEGEvoked",
    "EEGSignal",
    "EEGTFR",
    "EEGLMResult",
    "EEGLinearModel",
    "fit_eeg_lm",
    "parse_formula",
    "build_design_matrix",
    "EEGModelError",
    "FormulaSyntaxError",
    "RowCountMismatchError",
    "SingularDesignError",
    "UnknownPredictorError",
    "UnknownQuantityError",
]
