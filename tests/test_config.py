"""
Konfigürasyon modülü testleri
"""

import json

import pytest
import yaml

from eeg_lm_lab import config


class TestConfig:
    """Konfigürasyon test sınıfı"""

    def test_default_config_copy(self):
        """Varsayılan kopya bağımsız"""
        cfg = config.default_config()
        cfg['model']['formula'] = '~ rt'
        assert config.DEFAULT_CONFIG['model']['formula'] == '~ 1'

    def test_load_yaml_merges_defaults(self, temp_directory):
        """YAML değerleri varsayılanların üzerine yazılır"""
        path = temp_directory / 'cfg.yaml'
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump({'model': {'formula': '~ condition'}, 'data': {'time_lim': [0.0, 0.4]}}, f)

        cfg = config.load_config(path)
        assert cfg['model']['formula'] == '~ condition'
        assert cfg['model']['n_jobs'] == 1
        assert cfg['data']['time_lim'] == [0.0, 0.4]
        assert cfg['export']['quantity'] == 'coefficients'

    def test_load_json(self, temp_directory):
        """JSON konfigürasyon"""
        path = temp_directory / 'cfg.json'
        with open(path, 'w', encoding='utf-8') as f:
            json.dump({'export': {'long': False}}, f)

        cfg = config.load_config(path)
        assert cfg['export']['long'] is False
        assert cfg['export']['format'] == 'csv'

    def test_empty_yaml(self, temp_directory):
        """Boş dosya varsayılanları verir"""
        path = temp_directory / 'empty.yml'
        path.write_text('', encoding='utf-8')
        assert config.load_config(path) == config.DEFAULT_CONFIG

    def test_unknown_section(self, temp_directory):
        """Bilinmeyen bölüm"""
        path = temp_directory / 'cfg.yaml'
        path.write_text('segments:\n  rest: [0, 1]\n', encoding='utf-8')
        with pytest.raises(ValueError):
            config.load_config(path)

    def test_invalid_files(self, temp_directory):
        """Eksik dosya ve desteklenmeyen format"""
        with pytest.raises(FileNotFoundError):
            config.load_config(temp_directory / 'none.yaml')
        path = temp_directory / 'cfg.ini'
        path.write_text('[model]\n', encoding='utf-8')
        with pytest.raises(ValueError):
            config.load_config(path)

    def test_save_and_reload(self, temp_directory):
        """Kaydedilen konfigürasyon geri okunur"""
        cfg = config.default_config()
        cfg['model']['formula'] = '~ condition * scale(rt)'
        path = config.save_config(cfg, temp_directory / 'sub' / 'cfg.yaml')
        assert config.load_config(path) == cfg
