"""
Konfigürasyon modülü

Varsayılan analiz ayarları ve YAML/JSON konfigürasyon dosyalarının
okunması/yazılması.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from .glm import DEFAULT_MAX_CONDITION

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "model": {
        "formula": "~ 1",
        "n_jobs": 1,
        "max_condition": DEFAULT_MAX_CONDITION,
    },
    "data": {
        "time_lim": None,
        "baseline": None,
        "tfr_freq_range": None,
    },
    "export": {
        "quantity": "coefficients",
        "long": True,
        "format": "csv",
        "figure": None,
        "metadata": None,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def default_config() -> Dict[str, Dict[str, Any]]:
    """Varsayılan konfigürasyonun bağımsız bir kopyası"""
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config(file_path: Union[str, Path]) -> Dict[str, Dict[str, Any]]:
    """
    Konfigürasyon dosyasını yükle

    Dosyadaki değerler varsayılanların üzerine yazılır. Bilinmeyen
    bölümler hata verir.

    Parameters
    ----------
    file_path : str or Path
        `.yaml`, `.yml` veya `.json` dosyası

    Returns
    -------
    dict
        Birleştirilmiş konfigürasyon
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Dosya bulunamadı: {file_path}")

    file_ext = file_path.suffix.lower()
    with open(file_path, "r", encoding="utf-8") as f:
        if file_ext in (".yaml", ".yml"):
            user_config = yaml.safe_load(f) or {}
        elif file_ext == ".json":
            user_config = json.load(f)
        else:
            raise ValueError(f"Desteklenmeyen konfigürasyon formatı: {file_ext}")

    if not isinstance(user_config, dict):
        raise ValueError("Konfigürasyon dosyası bir sözlük içermeli")

    unknown = [key for key in user_config if key not in DEFAULT_CONFIG]
    if unknown:
        raise ValueError(
            f"Bilinmeyen konfigürasyon bölümleri: {', '.join(unknown)} "
            f"(geçerli: {', '.join(DEFAULT_CONFIG)})"
        )

    return _deep_merge(DEFAULT_CONFIG, user_config)


def save_config(config: Dict[str, Any], file_path: Union[str, Path]) -> Path:
    """Konfigürasyonu YAML olarak kaydet"""
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with open(file_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
    return file_path
