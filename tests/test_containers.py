"""
Sinyal veri yapıları testleri
"""

import numpy as np
import pandas as pd
import pytest

from eeg_lm_lab.containers import EEGEpochs, EEGEvoked, EEGSignal, EEGTFR
from eeg_lm_lab.errors import RowCountMismatchError


class TestEEGEpochs:
    """EEGEpochs test sınıfı"""

    def test_construction(self, sample_epochs):
        """Temel özellikler"""
        assert isinstance(sample_epochs, EEGSignal)
        assert sample_epochs.kind == 'epochs'
        assert sample_epochs.n_epochs == 100
        assert sample_epochs.n_channels == 2
        assert sample_epochs.n_times == 50
        assert sample_epochs.signal_tensor() is sample_epochs.signals

    def test_default_epoch_table(self):
        """Tablo verilmezse epoch numaraları"""
        data = EEGEpochs(signals=np.zeros((4, 2, 3)), times=[0, 1, 2], channels=['a', 'b'])
        assert list(data.epochs['epoch']) == [1, 2, 3, 4]

    def test_row_mismatch(self):
        """Tablo satır sayısı epoch sayısından farklı"""
        with pytest.raises(RowCountMismatchError):
            EEGEpochs(
                signals=np.zeros((4, 2, 3)),
                times=[0, 1, 2],
                channels=['a', 'b'],
                epochs=pd.DataFrame({'x': [1, 2, 3]}),
            )

    def test_axis_mismatch(self):
        """Zaman ve kanal eksenleri kontrol edilir"""
        with pytest.raises(ValueError):
            EEGEpochs(signals=np.zeros((4, 2, 3)), times=[0, 1], channels=['a', 'b'])
        with pytest.raises(ValueError):
            EEGEpochs(signals=np.zeros((4, 2, 3)), times=[0, 1, 2], channels=['a'])
        with pytest.raises(ValueError):
            EEGEpochs(signals=np.zeros((2, 3)), times=[0, 1, 2], channels=['a', 'b'])

    def test_bad_chan_info(self):
        """Koordinat tablosunda eksik sütun"""
        with pytest.raises(ValueError):
            EEGEpochs(
                signals=np.zeros((4, 2, 3)),
                times=[0, 1, 2],
                channels=['a', 'b'],
                chan_info=pd.DataFrame({'electrode': ['a', 'b'], 'x': [0, 1]}),
            )

    def test_select_times_inclusive(self, sample_epochs):
        """Aralık uçları dahil"""
        sub = sample_epochs.select_times((0.0, 0.1))
        assert sub.times[0] == pytest.approx(0.0)
        assert sub.times[-1] == pytest.approx(0.1)
        assert sub.signals.shape == (100, 2, len(sub.times))
        assert sample_epochs.n_times == 50

    def test_select_times_empty(self, sample_epochs):
        """Boş aralık"""
        with pytest.raises(ValueError):
            sample_epochs.select_times((1.0, 2.0))

    def test_rm_baseline(self, sample_epochs):
        """Baseline ortalaması sıfırlanır"""
        corrected = sample_epochs.rm_baseline((-0.1, 0.0))
        mask = (sample_epochs.times >= -0.1) & (sample_epochs.times <= 0.0)
        np.testing.assert_allclose(corrected.signals[..., mask].mean(axis=-1), 0.0, atol=1e-12)

    def test_rm_baseline_whole_epoch(self, sample_epochs):
        """Aralık verilmezse tüm epoch"""
        corrected = sample_epochs.rm_baseline()
        np.testing.assert_allclose(corrected.signals.mean(axis=-1), 0.0, atol=1e-12)

    def test_select_channels(self, sample_epochs):
        """Büyük/küçük harf duyarsız kanal seçimi"""
        sub = sample_epochs.select_channels(['cz'])
        assert sub.channels == ['Cz']
        assert sub.signals.shape == (100, 1, 50)
        assert list(sub.chan_info['electrode']) == ['Cz']
        with pytest.raises(ValueError):
            sample_epochs.select_channels(['Oz'])

    def test_select_epochs(self, sample_epochs):
        """Tensör ve tablo birlikte süzülür"""
        mask = (sample_epochs.epochs['condition'] == 'B').to_numpy()
        sub = sample_epochs.select_epochs(mask)
        assert sub.n_epochs == 50
        assert set(sub.epochs['condition']) == {'B'}
        assert list(sub.epochs.index) == list(range(50))

    def test_average(self, sample_epochs):
        """Ortalama evoked veri"""
        evoked = sample_epochs.average()
        assert isinstance(evoked, EEGEvoked)
        np.testing.assert_allclose(evoked.signals, sample_epochs.signals.mean(axis=0))

    def test_long_frame(self, sample_epochs):
        """Uzun tablo"""
        df = sample_epochs.as_long_frame()
        assert list(df.columns) == ['epoch', 'electrode', 'time', 'amplitude']
        assert len(df) == 100 * 2 * 50
        row = df[(df['epoch'] == 3) & (df['electrode'] == 'Cz')].iloc[4]
        assert row['amplitude'] == sample_epochs.signals[2, 1, 4]

    def test_butterfly_frame(self, sample_epochs):
        """Kelebek tablosu epoch ortalaması"""
        df = sample_epochs.butterfly_frame()
        assert list(df.columns) == ['electrode', 'time', 'amplitude']
        assert len(df) == 2 * 50


class TestEEGEvoked:
    """EEGEvoked test sınıfı"""

    def test_tensor(self):
        """1 x kanal x zaman tensör ve tek satırlık tablo"""
        evoked = EEGEvoked(signals=np.ones((3, 5)), times=np.arange(5), channels=['a', 'b', 'c'])
        assert evoked.signal_tensor().shape == (1, 3, 5)
        assert len(evoked.predictor_table()) == 1

    def test_select_channels(self):
        """Kanal ekseni ilk eksen"""
        evoked = EEGEvoked(signals=np.arange(15.0).reshape(3, 5), times=np.arange(5), channels=['a', 'b', 'c'])
        sub = evoked.select_channels(['c', 'a'])
        np.testing.assert_array_equal(sub.signals[0], np.arange(10.0, 15.0))
        assert sub.channels == ['c', 'a']


class TestEEGTFR:
    """EEGTFR test sınıfı"""

    def setup_method(self):
        """Test kurulumu"""
        rng = np.random.default_rng(11)
        self.tfr = EEGTFR(
            signals=rng.gamma(2.0, size=(6, 2, 3, 10)),
            times=np.linspace(0, 0.9, 10),
            channels=['Fz', 'Cz'],
            freqs=[4.0, 10.0, 20.0],
        )

    def test_signal_tensor(self):
        """Frekans ortalaması"""
        np.testing.assert_allclose(self.tfr.signal_tensor(), self.tfr.signals.mean(axis=2))
        np.testing.assert_allclose(self.tfr.signal_tensor((8, 25)), self.tfr.signals[:, :, 1:].mean(axis=2))
        with pytest.raises(ValueError):
            self.tfr.signal_tensor((40, 60))

    def test_freq_mismatch(self):
        """Frekans sayısı uyuşmuyor"""
        with pytest.raises(ValueError):
            EEGTFR(signals=np.zeros((2, 1, 3, 4)), times=np.arange(4), channels=['a'], freqs=[1.0, 2.0])

    def test_frames(self):
        """Güç sütun adı"""
        assert 'power' in self.tfr.butterfly_frame().columns
        long = self.tfr.as_long_frame()
        assert list(long.columns) == ['epoch', 'electrode', 'frequency', 'time', 'power']
        assert len(long) == 6 * 2 * 3 * 10

    def test_select_times(self):
        """Zaman seçimi son ekseni keser"""
        sub = self.tfr.select_times((0.0, 0.45))
        assert sub.signals.shape == (6, 2, 3, 5)
