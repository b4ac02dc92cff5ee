"""
Modulo per la gestione della configurazione del renderer master
"""
import copy
import os
import yaml
from typing import Dict, Any, List, Optional


DEFAULT_MUSIC_URL = 'https://cdn.pixabay.com/audio/2023/10/24/audio_333d9f1025.mp3'


class Config:
    """Classe per gestire la configurazione dell'applicazione"""

    DEFAULT_CONFIG = {
        'output_dir': './output',
        'manifest': None,
        'canvas': {
            'width': 1280,
            'height': 720,
        },
        'fps': 30,
        'sample_rate': 48000,
        'video_bitrate': 12_000_000,    # ~12 Mbps, mastering grade
        'audio_bitrate': 192_000,       # ~192 kbps
        'settle_delay': 1.0,            # secondi dopo l'ultima scena prima dello stop
        'music_url': DEFAULT_MUSIC_URL,
        'music_path': None,             # file locale, ha precedenza sull'URL
        'music_timeout': 10,
        'no_music': False,
        'realtime': False,
        'gains': {
            'music': 0.1,
            'sfx': 0.2,
            'narration': 1.0,
        },
        # Ordine di preferenza container/codec: il primo disponibile vince
        'formats': [
            {'container': 'mp4', 'video_codec': 'libx264', 'audio_codec': 'aac'},
            {'container': 'webm', 'video_codec': 'libvpx-vp9', 'audio_codec': 'libopus'},
        ],
        'logo': None,
    }

    NESTED_KEYS = ('canvas', 'gains', 'logo')

    def __init__(self, config_file: Optional[str] = None):
        """
        Inizializza la configurazione

        Args:
            config_file: Path al file di configurazione YAML (opzionale)
        """
        # Deep copy per evitare modifiche ai default
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_file and os.path.exists(config_file):
            self.load_from_file(config_file)

    def load_from_file(self, config_file: str) -> None:
        """
        Carica la configurazione da file YAML

        Args:
            config_file: Path al file di configurazione
        """
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                file_config = yaml.safe_load(f)
                if file_config:
                    # Merge profondo per canvas, gains e logo
                    for key, value in file_config.items():
                        if key in self.NESTED_KEYS and isinstance(value, dict):
                            if not isinstance(self.config.get(key), dict):
                                self.config[key] = {}
                            self._deep_merge(self.config[key], value)
                        else:
                            self.config[key] = value
        except Exception as e:
            raise Exception(f"Errore nel caricamento del file di configurazione: {e}")

    def _deep_merge(self, base: dict, update: dict) -> None:
        """
        Merge profondo di dizionari nested

        Args:
            base: Dizionario base da aggiornare
            update: Dizionario con gli aggiornamenti
        """
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def update_from_args(self, args: Dict[str, Any]) -> None:
        """
        Aggiorna la configurazione con argomenti da CLI
        Gli argomenti CLI hanno precedenza sul file di configurazione

        Args:
            args: Dizionario con gli argomenti da CLI
        """
        for key, value in args.items():
            if value is not None:
                self.config[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Ottiene un valore di configurazione

        Args:
            key: Chiave della configurazione
            default: Valore di default se la chiave non esiste

        Returns:
            Il valore della configurazione
        """
        return self.config.get(key, default)

    def get_all(self) -> Dict[str, Any]:
        """
        Ottiene tutta la configurazione

        Returns:
            Dizionario con tutta la configurazione
        """
        return self.config.copy()

    @property
    def canvas_size(self) -> tuple:
        canvas = self.config.get('canvas') or {}
        return int(canvas.get('width', 1280)), int(canvas.get('height', 720))

    @property
    def format_preferences(self) -> List[Dict[str, str]]:
        formats = self.config.get('formats') or self.DEFAULT_CONFIG['formats']
        return [dict(f) for f in formats]
