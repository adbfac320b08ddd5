"""
Pytest konfigürasyonu ve fixture'lar
"""

import tempfile
from pathlib import Path

import matplotlib
import mne
import numpy as np
import pandas as pd
import pytest

matplotlib.use("Agg")

from eeg_lm_lab.containers import EEGEpochs  # noqa: E402
from eeg_lm_lab.glm import fit_eeg_lm  # noqa: E402

N_EPOCHS = 100
N_CHANNELS = 2
N_TIMES = 50


@pytest.fixture
def sample_predictors():
    """İki düzeyli kategorik ve bir sürekli prediktör (50/50 bölünme)"""
    rng = np.random.default_rng(7)
    return pd.DataFrame({
        'epoch': np.arange(1, N_EPOCHS + 1),
        'condition': np.repeat(['A', 'B'], N_EPOCHS // 2),
        'rt': rng.normal(0.5, 0.1, N_EPOCHS),
    })


@pytest.fixture
def sample_times():
    """Zaman ekseni (-0.1 s ile 0.39 s arası)"""
    return np.round(np.linspace(-0.1, 0.39, N_TIMES), 3)


@pytest.fixture
def sample_tensor(sample_predictors):
    """Bilinen etkiler eklenmiş (epoch x kanal x zaman) sinyal"""
    rng = np.random.default_rng(42)
    is_b = (sample_predictors['condition'] == 'B').to_numpy(dtype=float)
    rt = sample_predictors['rt'].to_numpy()

    signal = rng.normal(0.0, 1.0, (N_EPOCHS, N_CHANNELS, N_TIMES))
    signal += 2.0
    signal += 1.5 * is_b[:, None, None]
    signal += 4.0 * rt[:, None, None]
    return signal


@pytest.fixture
def sample_chan_info():
    """Elektrot koordinatları"""
    return pd.DataFrame({
        'electrode': ['Fz', 'Cz'],
        'x': [0.0, 0.0],
        'y': [0.06, 0.0],
    })


@pytest.fixture
def sample_epochs(sample_tensor, sample_times, sample_predictors, sample_chan_info):
    """Örnek epoch verisi fixture'ı"""
    return EEGEpochs(
        signals=sample_tensor,
        times=sample_times,
        channels=['Fz', 'Cz'],
        epochs=sample_predictors,
        chan_info=sample_chan_info,
        sfreq=100.0,
    )


@pytest.fixture
def sample_result(sample_epochs):
    """`~ condition + rt` modelinin sonucu"""
    return fit_eeg_lm(sample_epochs, '~ condition + rt')


@pytest.fixture
def sample_mne_epochs():
    """Montajlı ve metadata'lı MNE Epochs nesnesi"""
    rng = np.random.default_rng(0)
    ch_names = ['Fz', 'Cz', 'Pz', 'C3', 'C4']
    info = mne.create_info(ch_names, 100.0, ch_types='eeg')
    data = rng.normal(0.0, 1e-6, (20, len(ch_names), 30))
    metadata = pd.DataFrame({
        'condition': np.tile(['A', 'B'], 10),
        'rt': rng.normal(0.5, 0.1, 20),
    })
    epochs = mne.EpochsArray(data, info, tmin=-0.1, metadata=metadata, verbose=False)
    epochs.set_montage(mne.channels.make_standard_montage('standard_1020'))
    return epochs


@pytest.fixture
def temp_directory():
    """Geçici dizin fixture'ı"""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


# Pytest konfigürasyonu
def pytest_configure(config):
    """Pytest konfigürasyonu"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
