"""
Veri giriş modülü

FIF ve EEGLAB (.set) epoch dosyalarını, MNE Epochs nesnelerini ve uzun
biçimli tabloları sinyal veri yapılarına dönüştürür. Prediktör
tablolarını CSV/TSV/Excel dosyalarından okur.
"""

from pathlib import Path
from typing import Optional, Union

import mne
import numpy as np
import pandas as pd
from rich.console import Console

from .containers import EEGEpochs
from .errors import RowCountMismatchError

console = Console()

LONG_FRAME_COLUMNS = ("epoch", "electrode", "time", "amplitude")


class EEGDataLoader:
    """EEG epoch verisi yükleme sınıfı"""

    def __init__(self, verbose: bool = True):
        self.verbose = verbose
        self.epochs = None

    def load_epochs(
        self,
        file_path: Union[str, Path],
        predictors: Optional[Union[str, Path, pd.DataFrame]] = None,
        montage: Optional[str] = None
    ) -> EEGEpochs:
        """
        Epoch dosyasını yükle

        Parameters
        ----------
        file_path : str or Path
            `.fif` / `-epo.fif` veya `.set` dosyası
        predictors : str, Path or DataFrame, optional
            Prediktör tablosu veya dosya yolu; verilmezse dosyadaki metadata
        montage : str, optional
            Dosyada konum yoksa uygulanacak standart montaj adı

        Returns
        -------
        EEGEpochs
            Yüklenen veri
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Dosya bulunamadı: {file_path}")

        file_ext = file_path.suffix.lower()

        if self.verbose:
            console.print(f"[green]Dosya yükleniyor: {file_path}[/green]")

        if file_ext in ('.fif', '.gz'):
            epochs = mne.read_epochs(file_path, preload=True, verbose=False)
        elif file_ext == '.set':
            epochs = mne.read_epochs_eeglab(file_path, verbose=False)
        else:
            raise ValueError(f"Desteklenmeyen dosya formatı: {file_ext}")

        if montage is not None:
            epochs.set_montage(mne.channels.make_standard_montage(montage), on_missing='ignore')

        if isinstance(predictors, (str, Path)):
            predictors = load_predictors(predictors)

        self.epochs = self.from_mne_epochs(epochs, predictors=predictors)
        return self.epochs

    def from_mne_epochs(
        self,
        epochs: mne.BaseEpochs,
        predictors: Optional[pd.DataFrame] = None
    ) -> EEGEpochs:
        """
        MNE Epochs nesnesini dönüştür

        Genlikler mikrovolta çevrilir. Prediktör tablosu verilmezse
        `epochs.metadata` kullanılır.
        """
        epochs = epochs.copy().pick('eeg')
        signals = epochs.get_data(units='uV')

        if predictors is None:
            if epochs.metadata is not None:
                predictors = epochs.metadata.reset_index(drop=True)
            else:
                inverse = {code: name for name, code in epochs.event_id.items()}
                predictors = pd.DataFrame({
                    'epoch': np.arange(1, len(epochs) + 1),
                    'event_type': [inverse.get(code, str(code)) for code in epochs.events[:, 2]],
                })
        elif len(predictors) != len(epochs):
            raise RowCountMismatchError(len(predictors), len(epochs))

        data = EEGEpochs(
            signals=signals,
            times=epochs.times.copy(),
            channels=list(epochs.ch_names),
            epochs=predictors,
            chan_info=chan_info_from_info(epochs.info),
            sfreq=float(epochs.info['sfreq']),
        )

        if self.verbose:
            console.print(
                f"[green]Veri yüklendi: {data.n_epochs} epoch, {data.n_channels} kanal, "
                f"{data.n_times} zaman noktası[/green]"
            )
        return data

    def from_long_frame(self, frame: pd.DataFrame) -> EEGEpochs:
        """
        Uzun biçimli tablodan epoch verisi oluştur

        Tablo `epoch, electrode, time, amplitude` sütunlarını içermeli.
        Diğer sütunlar epoch başına sabit kabul edilir ve prediktör
        tablosuna taşınır.
        """
        missing = [c for c in LONG_FRAME_COLUMNS if c not in frame.columns]
        if missing:
            raise ValueError(f"Eksik sütunlar: {', '.join(missing)}")

        epochs = list(pd.unique(frame['epoch']))
        channels = list(pd.unique(frame['electrode']))
        times = np.sort(pd.unique(frame['time']))

        cube = (
            frame.pivot_table(index=['epoch', 'electrode'], columns='time', values='amplitude', aggfunc='mean')
            .reindex(pd.MultiIndex.from_product([epochs, channels], names=['epoch', 'electrode']))
            .reindex(columns=times)
        )
        signals = cube.to_numpy().reshape(len(epochs), len(channels), len(times))

        extra = [c for c in frame.columns if c not in LONG_FRAME_COLUMNS]
        predictors = (
            frame[['epoch'] + extra]
            .drop_duplicates('epoch')
            .set_index('epoch')
            .reindex(epochs)
            .reset_index()
        )

        data = EEGEpochs(signals=signals, times=times, channels=channels, epochs=predictors)
        if self.verbose:
            console.print(f"[green]Tablo dönüştürüldü: {data.n_epochs} epoch, {data.n_channels} kanal[/green]")
        return data


def chan_info_from_info(info: mne.Info) -> Optional[pd.DataFrame]:
    """
    MNE Info nesnesinden elektrot konum tablosu çıkar

    x ekseni sol (-) / sağ (+), y ekseni arka (-) / ön (+) yönündedir.
    Konumu bilinmeyen kanallar tabloya girmez; hiç konum yoksa None döner.
    """
    rows = []
    for ch in info['chs']:
        pos = ch['loc'][:3]
        if np.all(np.isfinite(pos)) and np.any(pos != 0):
            rows.append({'electrode': ch['ch_name'], 'x': float(pos[0]), 'y': float(pos[1]), 'z': float(pos[2])})
    if not rows:
        return None
    return pd.DataFrame(rows)


def load_predictors(file_path: Union[str, Path]) -> pd.DataFrame:
    """Prediktör tablosunu CSV, TSV veya Excel dosyasından yükle"""
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Dosya bulunamadı: {file_path}")

    file_ext = file_path.suffix.lower()
    if file_ext == '.csv':
        return pd.read_csv(file_path)
    elif file_ext in ('.tsv', '.txt'):
        return pd.read_csv(file_path, sep='\t')
    elif file_ext in ('.xlsx', '.xls'):
        return pd.read_excel(file_path)
    else:
        raise ValueError(f"Desteklenmeyen tablo formatı: {file_ext}")
