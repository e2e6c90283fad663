"""
Audio cues for shopper actions.

Each cue is a short schedule of tones. ToneCueEmitter renders a schedule to
a mono float32 buffer with numpy and hands it to a player callable, so the
actual output device stays outside this package.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from storefront.logging import get_logger

logger = get_logger(__name__)

SAMPLE_RATE = 44100
ATTACK_SECONDS = 0.01
DECAY_FLOOR = 0.01
CHORD_STAGGER_SECONDS = 0.05
CHORD_NOTE_FACTOR = 0.8  # chord notes ring for 80% of the chord duration


class Cue(str, Enum):
    """Named shopper actions that have a sound."""
    ADD_TO_CART = "add_to_cart"
    ORDER_SUCCESS = "order_success"
    ERROR = "error"
    NOTIFICATION = "notification"


class Waveform(str, Enum):
    SINE = "sine"
    SQUARE = "square"
    SAWTOOTH = "sawtooth"
    TRIANGLE = "triangle"


@dataclass(frozen=True)
class Tone:
    """One oscillator note."""
    frequency: float
    duration: float
    start: float = 0.0
    waveform: Waveform = Waveform.SINE


def chord(frequencies: List[float], duration: float, start: float = 0.0) -> List[Tone]:
    """Arpeggiated chord: notes 50 ms apart, each 80% of the chord duration."""
    return [
        Tone(freq, duration * CHORD_NOTE_FACTOR, start + index * CHORD_STAGGER_SECONDS)
        for index, freq in enumerate(frequencies)
    ]


C_MAJOR = [523.25, 659.25, 783.99]  # C5, E5, G5
D_MAJOR = [587.33, 739.99, 880.00]  # D5, F#5, A5

CUE_TONES: Dict[Cue, List[Tone]] = {
    Cue.ADD_TO_CART: chord(C_MAJOR, 0.3),
    Cue.ORDER_SUCCESS: (
        chord(C_MAJOR, 0.4)
        + chord(D_MAJOR, 0.4, start=0.2)
        + chord(C_MAJOR + [1046.50], 0.6, start=0.4)
    ),
    Cue.ERROR: [
        Tone(220, 0.3, 0.0, Waveform.SAWTOOTH),
        Tone(196, 0.3, 0.15, Waveform.SAWTOOTH),
    ],
    Cue.NOTIFICATION: [
        Tone(800, 0.2, 0.0),
        Tone(1000, 0.2, 0.1),
    ],
}


class CueEmitter(ABC):
    """Plays a named cue. Best effort; callers never wait on it."""

    @abstractmethod
    def emit(self, cue: Cue) -> None:
        """Trigger the cue."""


class NullCueEmitter(CueEmitter):
    """Silent emitter for headless sessions."""

    def emit(self, cue: Cue) -> None:
        return None


class RecordingCueEmitter(CueEmitter):
    """Remembers emitted cues."""

    def __init__(self):
        self.cues: List[Cue] = []

    def emit(self, cue: Cue) -> None:
        self.cues.append(cue)


def _oscillate(waveform: Waveform, frequency: float, t: np.ndarray) -> np.ndarray:
    phase = frequency * t
    if waveform == Waveform.SINE:
        return np.sin(2 * np.pi * phase)
    if waveform == Waveform.SQUARE:
        return np.sign(np.sin(2 * np.pi * phase))
    if waveform == Waveform.SAWTOOTH:
        return 2.0 * (phase - np.floor(phase + 0.5))
    return 2.0 * np.abs(2.0 * (phase - np.floor(phase + 0.5))) - 1.0


def _envelope(samples: int, volume: float, sample_rate: int) -> np.ndarray:
    """Linear attack from 0 to volume over 10 ms, then exponential decay to 0.01."""
    attack = min(samples, max(1, int(ATTACK_SECONDS * sample_rate)))
    env = np.empty(samples, dtype=np.float64)
    env[:attack] = np.linspace(0.0, volume, attack, endpoint=False)
    decay = samples - attack
    if decay > 0:
        start = max(volume, DECAY_FLOOR)
        env[attack:] = np.geomspace(start, DECAY_FLOOR, decay)
    return env


def render_tones(tones: List[Tone], volume: float = 0.5, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Mix tones into one mono buffer clipped to [-1, 1]."""
    if not tones:
        return np.zeros(0, dtype=np.float32)
    length = max(int(round((tone.start + tone.duration) * sample_rate)) for tone in tones)
    buffer = np.zeros(length, dtype=np.float64)
    for tone in tones:
        offset = int(round(tone.start * sample_rate))
        samples = int(round(tone.duration * sample_rate))
        if samples <= 0:
            continue
        t = np.arange(samples) / sample_rate
        wave = _oscillate(tone.waveform, tone.frequency, t) * _envelope(samples, volume, sample_rate)
        buffer[offset:offset + samples] += wave[: length - offset]
    return np.clip(buffer, -1.0, 1.0).astype(np.float32)


Player = Callable[[np.ndarray, int], None]


class ToneCueEmitter(CueEmitter):
    """
    Synthesizes cues and passes the samples to ``player(samples, sample_rate)``.

    Rendered buffers are cached per cue. Any failure is logged and dropped:
    a missing audio device must never break a cart action.
    """

    def __init__(
        self,
        player: Player,
        volume: float = 0.5,
        enabled: bool = True,
        sample_rate: int = SAMPLE_RATE,
    ):
        if not 0 <= volume <= 1:
            raise ValueError("volume must be between 0 and 1")
        self.player = player
        self.volume = volume
        self.enabled = enabled
        self.sample_rate = sample_rate
        self._cache: Dict[Tuple[Cue, float], np.ndarray] = {}

    def render(self, cue: Cue) -> np.ndarray:
        key = (cue, self.volume)
        if key not in self._cache:
            self._cache[key] = render_tones(CUE_TONES[cue], self.volume, self.sample_rate)
        return self._cache[key]

    def emit(self, cue: Cue) -> None:
        if not self.enabled:
            return
        try:
            self.player(self.render(cue), self.sample_rate)
        except Exception as e:
            logger.warning(f"Audio cue {cue.value} failed: {e}")


def create_cue_emitter(player: Optional[Player] = None, volume: float = 0.5, enabled: bool = True) -> CueEmitter:
    """ToneCueEmitter when a player is available, otherwise silence."""
    if player is None or not enabled:
        return NullCueEmitter()
    return ToneCueEmitter(player, volume=volume, enabled=enabled)
