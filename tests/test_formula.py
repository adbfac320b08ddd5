"""
Formül ve tasarım matrisi testleri
"""

import numpy as np
import pandas as pd
import pytest

from eeg_lm_lab.errors import (
    FormulaSyntaxError,
    RowCountMismatchError,
    UnknownPredictorError,
)
from eeg_lm_lab.formula import (
    INTERCEPT_LABEL,
    build_design_matrix,
    parse_formula,
)


class TestParseFormula:
    """Formül çözümleyici testleri"""

    def test_intercept_default(self):
        """Sabit terim varsayılan olarak dahil"""
        spec = parse_formula('~ a + b')
        assert spec.intercept
        assert spec.term_labels == [INTERCEPT_LABEL, 'a', 'b']

    @pytest.mark.parametrize('formula', ['~ 0 + a', '~ a - 1', '~ -1 + a', '~ a + 0'])
    def test_intercept_removed(self, formula):
        """0 veya -1 sabit terimi kaldırır"""
        spec = parse_formula(formula)
        assert not spec.intercept
        assert spec.term_labels == ['a']

    def test_lhs(self):
        """Sol taraf adı saklanır"""
        spec = parse_formula('amplitude ~ a')
        assert spec.lhs == 'amplitude'

    def test_star_expands(self):
        """a*b = a + b + a:b"""
        spec = parse_formula('~ a * b')
        assert spec.term_labels == [INTERCEPT_LABEL, 'a', 'b', 'a:b']

    def test_interactions_after_main_effects(self):
        """Etkileşimler ana etkilerden sonra gelir"""
        spec = parse_formula('~ a:b + c + a')
        assert spec.term_labels == [INTERCEPT_LABEL, 'c', 'a', 'a:b']

    def test_term_removal(self):
        """`-` ile terim çıkarma"""
        spec = parse_formula('~ a * b - a:b')
        assert spec.term_labels == [INTERCEPT_LABEL, 'a', 'b']

    def test_parentheses(self):
        """Parantezli çarpım"""
        spec = parse_formula('~ (a + b):c')
        assert spec.term_labels == [INTERCEPT_LABEL, 'a:c', 'b:c']

    def test_transforms(self):
        """scale() ve C() fonksiyonları"""
        spec = parse_formula('~ scale(rt) + C(block)')
        assert spec.term_labels == [INTERCEPT_LABEL, 'scale(rt)', 'C(block)']
        assert spec.variables == ['rt', 'block']

    def test_duplicate_terms(self):
        """Tekrarlanan terim bir kez alınır"""
        spec = parse_formula('~ a + a')
        assert spec.term_labels == [INTERCEPT_LABEL, 'a']

    @pytest.mark.parametrize('formula', [
        'a + b',
        '~ a ~ b',
        '~',
        '~ a +',
        '~ (a + b',
        '~ a + b)',
        '~ log(a)',
        '~ 0',
        '~ a $ b',
        'x y ~ a',
    ])
    def test_invalid_formula(self, formula):
        """Hatalı formüller"""
        with pytest.raises(FormulaSyntaxError):
            parse_formula(formula)

    def test_syntax_error_is_value_error(self):
        """Hata ailesi ValueError'dan türetilir"""
        with pytest.raises(ValueError):
            parse_formula('~ a +')


class TestDesignMatrix:
    """Tasarım matrisi testleri"""

    def setup_method(self):
        """Test kurulumu"""
        self.predictors = pd.DataFrame({
            'condition': ['A', 'B', 'A', 'B', 'C', 'C'],
            'rt': [0.4, 0.5, 0.6, 0.7, 0.3, 0.5],
            'block': [1, 2, 1, 2, 1, 2],
        })

    def test_treatment_coding(self):
        """İlk düzey referans, diğerleri gösterge sütunu"""
        dm = build_design_matrix('~ condition + rt', self.predictors)
        assert dm.column_names == (INTERCEPT_LABEL, 'conditionB', 'conditionC', 'rt')
        np.testing.assert_array_equal(dm.values[:, 0], 1.0)
        np.testing.assert_array_equal(dm.values[:, 1], [0, 1, 0, 1, 0, 0])
        np.testing.assert_array_equal(dm.values[:, 2], [0, 0, 0, 0, 1, 1])
        np.testing.assert_allclose(dm.values[:, 3], self.predictors['rt'])
        assert dm.levels['condition'] == ('A', 'B', 'C')

    def test_full_coding_without_intercept(self):
        """Sabit terim yoksa ilk kategorik tüm düzeyleriyle kodlanır"""
        dm = build_design_matrix('~ 0 + condition + rt', self.predictors)
        assert dm.column_names == ('conditionA', 'conditionB', 'conditionC', 'rt')
        np.testing.assert_array_equal(dm.values[:, :3].sum(axis=1), 1.0)

    def test_second_categorical_reduced(self):
        """İkinci kategorik prediktör referans düzeyini düşürür"""
        dm = build_design_matrix('~ 0 + condition + C(block)', self.predictors)
        assert dm.column_names == ('conditionA', 'conditionB', 'conditionC', 'C(block)2')

    def test_explicit_level_order(self):
        """Kategorik tipte açık düzey sırası referansı belirler"""
        predictors = self.predictors.assign(
            condition=pd.Categorical(self.predictors['condition'], categories=['C', 'A', 'B'])
        )
        dm = build_design_matrix('~ condition', predictors)
        assert dm.column_names == (INTERCEPT_LABEL, 'conditionA', 'conditionB')

    def test_interaction_columns(self):
        """Kategorik x sürekli etkileşim"""
        dm = build_design_matrix('~ condition * rt', self.predictors)
        assert dm.column_names == (
            INTERCEPT_LABEL, 'conditionB', 'conditionC', 'rt', 'conditionB:rt', 'conditionC:rt'
        )
        np.testing.assert_allclose(dm.values[:, 4], dm.values[:, 1] * dm.values[:, 3])
        assert dm.column_terms[4] == 'condition:rt'

    def test_interaction_without_main_effect(self):
        """Ana etkisi olmayan etkileşim tüm düzeyleri kullanır"""
        dm = build_design_matrix('~ condition:rt', self.predictors)
        assert dm.column_names == (
            INTERCEPT_LABEL, 'conditionA:rt', 'conditionB:rt', 'conditionC:rt'
        )
        is_a = (self.predictors['condition'] == 'A').to_numpy(dtype=float)
        np.testing.assert_allclose(dm.values[:, 1], is_a * self.predictors['rt'])

    def test_interaction_without_intercept(self):
        """Sabit terimsiz tek etkileşim: düzey başına bir eğim"""
        dm = build_design_matrix('~ 0 + condition:rt', self.predictors)
        assert dm.column_names == ('conditionA:rt', 'conditionB:rt', 'conditionC:rt')
        np.testing.assert_allclose(dm.values.sum(axis=1), self.predictors['rt'])

    def test_nested_slopes(self):
        """Ana etki varken etkileşim yine tüm düzeyleri kullanır (rt ana etkisi yok)"""
        dm = build_design_matrix('~ condition + condition:rt', self.predictors)
        assert dm.column_names == (
            INTERCEPT_LABEL, 'conditionB', 'conditionC',
            'conditionA:rt', 'conditionB:rt', 'conditionC:rt',
        )

    def test_no_intercept_numeric_first(self):
        """Sabit terim yoksa ilk kategorik faktör sürekli prediktörden sonra da tam kodlanır"""
        dm = build_design_matrix('~ 0 + rt + condition', self.predictors)
        assert dm.column_names == ('rt', 'conditionA', 'conditionB', 'conditionC')

    def test_scale(self):
        """scale() ortalama 0, standart sapma 1"""
        dm = build_design_matrix('~ scale(rt)', self.predictors)
        x = dm.values[:, 1]
        assert np.mean(x) == pytest.approx(0.0, abs=1e-12)
        assert np.std(x, ddof=1) == pytest.approx(1.0)
        mean, sd = dm.scaling['scale(rt)']
        assert mean == pytest.approx(self.predictors['rt'].mean())
        assert sd == pytest.approx(self.predictors['rt'].std())

    def test_scale_categorical_rejected(self):
        """Kategorik sütun scale() ile kullanılamaz"""
        with pytest.raises(FormulaSyntaxError):
            build_design_matrix('~ scale(condition)', self.predictors)

    def test_intercept_only(self):
        """Yalnız sabit terimli model"""
        dm = build_design_matrix('~ 1', self.predictors)
        assert dm.column_names == (INTERCEPT_LABEL,)
        assert dm.values.shape == (6, 1)

    def test_missing_rows_excluded(self):
        """Eksik prediktör içeren satırlar dışlanır"""
        predictors = self.predictors.copy()
        predictors.loc[2, 'rt'] = np.nan
        dm = build_design_matrix('~ condition + rt', predictors)
        assert dm.n_rows == 5
        assert dm.n_excluded == 1
        assert not dm.row_mask[2]

    def test_missing_in_unused_column_ignored(self):
        """Formülde geçmeyen sütundaki eksik değer dışlamaz"""
        predictors = self.predictors.copy()
        predictors.loc[0, 'block'] = np.nan
        dm = build_design_matrix('~ rt', predictors)
        assert dm.n_excluded == 0

    def test_exclude_mask(self):
        """Ek dışlama maskesi"""
        exclude = np.array([True, False, False, False, False, False])
        dm = build_design_matrix('~ rt', self.predictors, exclude=exclude)
        assert dm.n_rows == 5

    def test_unknown_predictor(self):
        """Tabloda olmayan sütun"""
        with pytest.raises(UnknownPredictorError) as excinfo:
            build_design_matrix('~ condition + missing_col', self.predictors)
        assert excinfo.value.name == 'missing_col'

    def test_row_count_mismatch(self):
        """Satır sayısı epoch sayısından farklı"""
        with pytest.raises(RowCountMismatchError):
            build_design_matrix('~ rt', self.predictors, n_epochs=10)

    def test_values_read_only(self):
        """Tasarım matrisi değiştirilemez"""
        dm = build_design_matrix('~ rt', self.predictors)
        with pytest.raises(ValueError):
            dm.values[0, 0] = 5.0

    def test_to_frame(self):
        """DataFrame dönüşümü"""
        frame = build_design_matrix('~ condition', self.predictors).to_frame()
        assert list(frame.columns) == [INTERCEPT_LABEL, 'conditionB', 'conditionC']
