"""
Hata sınıfları

Model kurma ve uydurma sırasında oluşan yapısal hatalar.
Sayısal dejenerasyonlar (sıfır serbestlik derecesi, sabit yanıt) hata
değildir; ilgili istatistikte NaN olarak yayılırlar.
"""


class EEGModelError(ValueError):
    """Tüm model hatalarının temel sınıfı"""


class FormulaSyntaxError(EEGModelError):
    """Formül metni çözümlenemedi"""


class UnknownPredictorError(EEGModelError):
    """Formülde geçen sütun prediktör tablosunda yok"""

    def __init__(self, name: str, available=None):
        self.name = name
        self.available = list(available) if available is not None else []
        message = f"Prediktör bulunamadı: '{name}'"
        if self.available:
            message += f" (mevcut sütunlar: {', '.join(map(str, self.available))})"
        super().__init__(message)


class RowCountMismatchError(EEGModelError):
    """Prediktör tablosu ile sinyal tensörünün epoch sayısı uyuşmuyor"""

    def __init__(self, n_rows: int, n_epochs: int):
        self.n_rows = n_rows
        self.n_epochs = n_epochs
        super().__init__(
            f"Prediktör tablosu {n_rows} satır içeriyor, sinyal tensörü {n_epochs} epoch içeriyor"
        )


class SingularDesignError(EEGModelError):
    """Tasarım matrisi tam ranklı değil"""

    def __init__(self, rank: int, n_columns: int, condition_number: float):
        self.rank = rank
        self.n_columns = n_columns
        self.condition_number = condition_number
        super().__init__(
            f"Tasarım matrisi tekil: rank {rank}/{n_columns}, "
            f"koşul sayısı {condition_number:.3g}"
        )


class UnknownQuantityError(EEGModelError):
    """Sonuç nesnesinde olmayan bir büyüklük istendi"""
