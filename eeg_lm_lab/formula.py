"""
Model formülü modülü

`~ 0 + kosul + scale(rt)` biçimindeki formülleri çözümler ve prediktör
tablosundan sayısal tasarım matrisi üretir.

Desteklenen sözdizimi:
- `+` toplamsal terim, `-` terim çıkarma
- `0` veya `-1` sabit terimi kaldırır, `1` ekler
- `a:b` etkileşim, `a*b` = `a + b + a:b`
- `scale(x)` standartlaştırılmış sürekli prediktör
- `C(x)` sayısal sütunu kategorik olarak kodla
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from .errors import (
    FormulaSyntaxError,
    RowCountMismatchError,
    UnknownPredictorError,
)

INTERCEPT_LABEL = "(Intercept)"
TRANSFORMS = ("scale", "C")

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<number>\d+(?:\.\d*)?)|(?P<name>[A-Za-z_.][A-Za-z0-9_.]*)|(?P<op>[~+\-*:()]))"
)


@dataclass(frozen=True)
class Factor:
    """Bir terimin tek değişkenli bileşeni"""

    name: str
    transform: Optional[str] = None

    @property
    def label(self) -> str:
        if self.transform is None:
            return self.name
        return f"{self.transform}({self.name})"


@dataclass(frozen=True)
class Term:
    """Bir veya daha fazla faktörün çarpımı"""

    factors: Tuple[Factor, ...]

    @property
    def label(self) -> str:
        return ":".join(f.label for f in self.factors)

    @property
    def order(self) -> int:
        return len(self.factors)


@dataclass(frozen=True)
class ModelSpec:
    """
    Çözümlenmiş model tanımı

    Attributes
    ----------
    formula : str
        Orijinal formül metni
    intercept : bool
        Sabit terim modele dahil mi
    terms : tuple of Term
        Kanonik sırada terimler (önce ana etkiler, sonra etkileşimler)
    lhs : str, optional
        Sol taraf adı (uydurmada kullanılmaz)
    """

    formula: str
    intercept: bool
    terms: Tuple[Term, ...]
    lhs: Optional[str] = None

    @property
    def term_labels(self) -> List[str]:
        labels = [t.label for t in self.terms]
        if self.intercept:
            labels.insert(0, INTERCEPT_LABEL)
        return labels

    @property
    def variables(self) -> List[str]:
        names = []
        for term in self.terms:
            for factor in term.factors:
                if factor.name not in names:
                    names.append(factor.name)
        return names


def _tokenize(formula: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    text = formula.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None or match.end() == pos:
            raise FormulaSyntaxError(f"Formülde geçersiz karakter (konum {pos}): {formula!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


class _Parser:
    """Sağ taraf için özyinelemeli iniş çözümleyicisi"""

    def __init__(self, tokens: List[Tuple[str, str]], formula: str):
        self.tokens = tokens
        self.formula = formula
        self.pos = 0

    def peek(self) -> Optional[Tuple[str, str]]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def take(self) -> Tuple[str, str]:
        token = self.peek()
        if token is None:
            raise FormulaSyntaxError(f"Formül beklenmedik şekilde bitti: {self.formula!r}")
        self.pos += 1
        return token

    def expect(self, value: str):
        kind, text = self.take()
        if text != value:
            raise FormulaSyntaxError(f"'{value}' bekleniyordu, '{text}' bulundu: {self.formula!r}")

    def parse_rhs(self) -> Tuple[bool, List[Term]]:
        intercept = True
        terms: List[Term] = []
        removed: List[Term] = []

        sign = "+"
        if self.peek() == ("op", "-"):
            self.take()
            sign = "-"

        while True:
            item = self.parse_product()
            if isinstance(item, str):
                # 0 / 1 sabit terimi kontrol eder
                if item == "1":
                    intercept = sign == "+"
                elif item == "0":
                    intercept = sign == "-"
                else:
                    raise FormulaSyntaxError(f"Geçersiz sayısal terim '{item}': {self.formula!r}")
            elif sign == "+":
                for term in item:
                    if term not in terms:
                        terms.append(term)
            else:
                removed.extend(item)

            token = self.peek()
            if token is None or token == ("op", ")"):
                break
            kind, text = self.take()
            if text not in ("+", "-"):
                raise FormulaSyntaxError(f"'+' veya '-' bekleniyordu, '{text}' bulundu: {self.formula!r}")
            sign = text

        terms = [t for t in terms if t not in removed]
        # Etkileşim derecesine göre kararlı sıralama
        terms.sort(key=lambda t: t.order)
        return intercept, terms

    def parse_product(self) -> Union[str, List[Term]]:
        left = self.parse_atom()
        while self.peek() in (("op", ":"), ("op", "*")):
            _, op = self.take()
            right = self.parse_atom()
            if isinstance(left, str) or isinstance(right, str):
                raise FormulaSyntaxError(f"Sayılar etkileşime giremez: {self.formula!r}")
            crossed = [_combine(a, b) for a in left for b in right]
            if op == ":":
                left = _unique(crossed)
            else:
                left = _unique(left + right + crossed)
        return left

    def parse_atom(self) -> Union[str, List[Term]]:
        kind, text = self.take()
        if kind == "number":
            value = float(text)
            if value in (0.0, 1.0):
                return str(int(value))
            return text
        if kind == "op" and text == "(":
            intercept, inner = self.parse_rhs()
            self.expect(")")
            if not intercept:
                raise FormulaSyntaxError(f"Parantez içinde sabit terim kaldırılamaz: {self.formula!r}")
            return inner
        if kind != "name":
            raise FormulaSyntaxError(f"Beklenmeyen '{text}': {self.formula!r}")

        if self.peek() == ("op", "("):
            if text not in TRANSFORMS:
                raise FormulaSyntaxError(f"Desteklenmeyen fonksiyon: {text}()")
            self.take()
            arg_kind, arg = self.take()
            if arg_kind != "name":
                raise FormulaSyntaxError(f"{text}() bir sütun adı almalı: {self.formula!r}")
            self.expect(")")
            return [Term((Factor(arg, text),))]
        return [Term((Factor(text),))]


def _combine(a: Term, b: Term) -> Term:
    factors = list(a.factors)
    for factor in b.factors:
        if factor not in factors:
            factors.append(factor)
    return Term(tuple(factors))


def _unique(terms: Sequence[Term]) -> List[Term]:
    out = []
    for term in terms:
        if term not in out:
            out.append(term)
    return out


def parse_formula(formula: str) -> ModelSpec:
    """
    Formül metnini model tanımına çevir

    Parameters
    ----------
    formula : str
        `[lhs] ~ [0 +] terim [+ terim ...]` biçiminde formül

    Returns
    -------
    ModelSpec
        Çözümlenmiş model
    """
    tokens = _tokenize(formula)
    tilde = [i for i, tok in enumerate(tokens) if tok == ("op", "~")]
    if len(tilde) != 1:
        raise FormulaSyntaxError(f"Formül tam olarak bir '~' içermeli: {formula!r}")

    lhs_tokens = tokens[:tilde[0]]
    rhs_tokens = tokens[tilde[0] + 1:]

    lhs = None
    if lhs_tokens:
        if len(lhs_tokens) != 1 or lhs_tokens[0][0] != "name":
            raise FormulaSyntaxError(f"Sol taraf tek bir ad olmalı: {formula!r}")
        lhs = lhs_tokens[0][1]

    if not rhs_tokens:
        raise FormulaSyntaxError(f"Sağ taraf boş: {formula!r}")

    parser = _Parser(rhs_tokens, formula)
    intercept, terms = parser.parse_rhs()
    if parser.peek() is not None:
        raise FormulaSyntaxError(f"Fazladan ')' : {formula!r}")

    if not intercept and not terms:
        raise FormulaSyntaxError(f"Model en az bir terim içermeli: {formula!r}")

    return ModelSpec(formula=formula, intercept=intercept, terms=tuple(terms), lhs=lhs)


@dataclass(frozen=True, eq=False)
class DesignMatrix:
    """
    Sayısal tasarım matrisi

    Attributes
    ----------
    values : np.ndarray
        (epoch x sütun) matris, yalnızca okunur
    column_names : tuple of str
        Sütun adları (katsayı ekseni ile aynı sırada)
    column_terms : tuple of str
        Her sütunun ait olduğu terim
    spec : ModelSpec
        Matrisin üretildiği model
    row_mask : np.ndarray
        Tablodaki her satır için modele dahil edildi mi
    levels : dict
        Kategorik prediktörlerin düzey sırası (ilk düzey referans)
    scaling : dict
        `scale()` terimleri için (ortalama, standart sapma)
    """

    values: np.ndarray
    column_names: Tuple[str, ...]
    column_terms: Tuple[str, ...]
    spec: ModelSpec
    row_mask: np.ndarray
    levels: Dict[str, Tuple] = field(default_factory=dict)
    scaling: Dict[str, Tuple[float, float]] = field(default_factory=dict)

    @property
    def n_rows(self) -> int:
        return self.values.shape[0]

    @property
    def n_columns(self) -> int:
        return self.values.shape[1]

    @property
    def n_excluded(self) -> int:
        return int(np.sum(~self.row_mask))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(np.asarray(self.values), columns=list(self.column_names))


def _is_categorical(series: pd.Series, factor: Factor) -> bool:
    if factor.transform == "C":
        return True
    if isinstance(series.dtype, pd.CategoricalDtype) or is_bool_dtype(series):
        return True
    return not is_numeric_dtype(series)


def _levels_of(series: pd.Series) -> Tuple:
    if isinstance(series.dtype, pd.CategoricalDtype):
        # Açık düzey listesi varsa onun sırası geçerli
        return tuple(series.cat.remove_unused_categories().cat.categories)
    values = pd.unique(series)
    try:
        return tuple(sorted(values))
    except TypeError:
        return tuple(sorted(values, key=str))


def _factor_columns(
    factor: Factor,
    series: pd.Series,
    full: bool,
    levels: Dict[str, Tuple],
    scaling: Dict[str, Tuple[float, float]],
) -> List[Tuple[str, np.ndarray]]:
    if _is_categorical(series, factor):
        if factor.transform == "scale":
            raise FormulaSyntaxError(f"scale() sayısal bir prediktör gerektirir: {factor.name}")
        lv = _levels_of(series)
        levels[factor.label] = lv
        used = lv if full else lv[1:]
        values = series.to_numpy()
        return [
            (f"{factor.label}{level}", (values == level).astype(float))
            for level in used
        ]

    x = series.to_numpy(dtype=float)
    if factor.transform == "scale":
        mean = float(np.mean(x))
        sd = float(np.std(x, ddof=1)) if len(x) > 1 else 0.0
        # Sabit sütun sıfırlanır, tekillik uydurmada yakalanır
        x = (x - mean) / (sd if sd > 0 else 1.0)
        scaling[factor.label] = (mean, sd)
    return [(factor.label, x)]


def validate_predictors(
    spec: ModelSpec,
    predictors: pd.DataFrame,
    n_epochs: Optional[int] = None
):
    """Satır sayısını ve formülde geçen sütunları kontrol et"""
    if n_epochs is not None and len(predictors) != n_epochs:
        raise RowCountMismatchError(len(predictors), n_epochs)

    for name in spec.variables:
        if name not in predictors.columns:
            raise UnknownPredictorError(name, predictors.columns)


def build_design_matrix(
    spec: Union[str, ModelSpec],
    predictors: pd.DataFrame,
    n_epochs: Optional[int] = None,
    exclude: Optional[np.ndarray] = None,
) -> DesignMatrix:
    """
    Prediktör tablosundan tasarım matrisi oluştur

    Eksik değer içeren satırlar (ve `exclude` ile işaretlenenler) tüm
    modelden çıkarılır; hangi satırların kaldığı `row_mask` içinde döner.

    Parameters
    ----------
    spec : str or ModelSpec
        Formül veya çözümlenmiş model
    predictors : pd.DataFrame
        Her epoch için bir satır
    n_epochs : int, optional
        Sinyal tensörünün epoch sayısı, verilirse satır sayısı ile karşılaştırılır
    exclude : np.ndarray, optional
        Ek olarak dışlanacak satırlar (boolean)

    Returns
    -------
    DesignMatrix
        Tasarım matrisi
    """
    if isinstance(spec, str):
        spec = parse_formula(spec)

    validate_predictors(spec, predictors, n_epochs)
    n_rows = len(predictors)

    keep = np.ones(n_rows, dtype=bool)
    if spec.variables:
        keep &= ~predictors[spec.variables].isna().any(axis=1).to_numpy()
    if exclude is not None:
        exclude = np.asarray(exclude, dtype=bool)
        if exclude.shape != (n_rows,):
            raise RowCountMismatchError(len(exclude), n_rows)
        keep &= ~exclude

    table = predictors.loc[keep, spec.variables].reset_index(drop=True)
    n_kept = int(keep.sum())

    levels: Dict[str, Tuple] = {}
    scaling: Dict[str, Tuple[float, float]] = {}
    columns: List[Tuple[str, np.ndarray]] = []
    column_terms: List[str] = []

    if spec.intercept:
        columns.append((INTERCEPT_LABEL, np.ones(n_kept)))
        column_terms.append(INTERCEPT_LABEL)

    # Bir faktör, terimden çıkarıldığında kalan terim modelde yoksa tüm
    # düzeyleri ile kodlanır. Sabit terim yoksa ilk kategorik faktör de
    # tüm düzeyleri ile kodlanır, boş terim her zaman mevcut sayılır.
    present = {frozenset()}
    full_pending = not spec.intercept

    for term in spec.terms:
        term_factors = frozenset(term.factors)
        term_columns = [("", np.ones(n_kept))]
        for factor in term.factors:
            series = table[factor.name]
            categorical = _is_categorical(series, factor)
            if categorical and full_pending:
                full = True
                full_pending = False
            else:
                full = categorical and (term_factors - {factor}) not in present
            factor_cols = _factor_columns(factor, series, full, levels, scaling)
            term_columns = [
                (f"{name}:{fname}" if name else fname, values * fvalues)
                for name, values in term_columns
                for fname, fvalues in factor_cols
            ]
        present.add(term_factors)

        columns.extend(term_columns)
        column_terms.extend([term.label] * len(term_columns))

    if columns:
        values = np.column_stack([c[1] for c in columns])
    else:
        values = np.empty((n_kept, 0))
    values.setflags(write=False)

    return DesignMatrix(
        values=values,
        column_names=tuple(c[0] for c in columns),
        column_terms=tuple(column_terms),
        spec=spec,
        row_mask=keep,
        levels=levels,
        scaling=scaling,
    )
