"""
Configuration dataclasses for the two note producers.

These immutable config objects hold the policy constants of the pitch tracker,
the note segmenter and the composition generator. The thresholds are
heuristics, not derived values: keeping them here lets tests target the exact
boundary behaviour and lets callers tune a sweep without touching the
algorithms.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PitchTrackerConfig:
    """
    Configuration for single-frame autocorrelation pitch estimation.

    Attributes:
        rms_gate: Frames with RMS below this are unvoiced. Defaults to 0.01.
        trim_threshold: Amplitude under which leading/trailing samples are
            considered near-silent edges and trimmed before autocorrelation.
            Defaults to 0.2.
    """

    rms_gate: float = 0.01
    trim_threshold: float = 0.2

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.rms_gate < 0:
            raise ValueError(f"rms_gate must be non-negative, got {self.rms_gate}")
        if self.trim_threshold <= 0:
            raise ValueError(f"trim_threshold must be positive, got {self.trim_threshold}")


@dataclass(frozen=True)
class SegmenterConfig:
    """
    Configuration for the frame-to-note segmentation sweep.

    Attributes:
        window_size: Samples per analysis window. Defaults to 2048
            (~46 ms at 44.1 kHz).
        hop_size: Samples between window starts. Defaults to 1024 (50% overlap).
        silence_rms: Windows under this RMS close the open note. Defaults to 0.02.
        min_note_frames: A note must accrue MORE than this many frames to be
            emitted. Defaults to 4 (~100 ms at 44.1 kHz / hop 1024).
        semitone_tolerance: Pitch drift (semitones) absorbed as vibrato
            instead of starting a new note. Defaults to 1.
        min_duration_sec: Emitted durations are clamped up to this. Defaults to 0.1.
        velocity: Fixed velocity of analysed notes. Defaults to 0.7.
        silence_confidence: Confidence of notes closed by silence. Defaults to 0.8.
        change_confidence: Confidence of notes closed by a pitch change or by
            the end of the buffer. Defaults to 0.85.
        max_segment_sec: Longest slice analysed per call. Defaults to 90.0.
    """

    window_size: int = 2048
    hop_size: int = 1024
    silence_rms: float = 0.02
    min_note_frames: int = 4
    semitone_tolerance: int = 1
    min_duration_sec: float = 0.1
    velocity: float = 0.7
    silence_confidence: float = 0.8
    change_confidence: float = 0.85
    max_segment_sec: float = 90.0

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.window_size <= 1:
            raise ValueError(f"window_size must be > 1, got {self.window_size}")
        if self.hop_size <= 0:
            raise ValueError(f"hop_size must be positive, got {self.hop_size}")
        if self.hop_size > self.window_size:
            raise ValueError(
                f"hop_size ({self.hop_size}) must not exceed window_size ({self.window_size})"
            )
        if self.min_note_frames < 0:
            raise ValueError(f"min_note_frames must be non-negative, got {self.min_note_frames}")
        if self.semitone_tolerance < 0:
            raise ValueError(
                f"semitone_tolerance must be non-negative, got {self.semitone_tolerance}"
            )
        if self.min_duration_sec <= 0:
            raise ValueError(f"min_duration_sec must be positive, got {self.min_duration_sec}")
        for name in ("velocity", "silence_confidence", "change_confidence"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.max_segment_sec <= 0:
            raise ValueError(f"max_segment_sec must be positive, got {self.max_segment_sec}")


@dataclass(frozen=True)
class ComposerConfig:
    """
    Configuration for the seeded composition generator.

    Attributes:
        melody_low: Lowest MIDI pitch of the melody layer. Defaults to 60 (C4).
        melody_high: Highest MIDI pitch of the melody layer. Defaults to 84 (C6).
        apply_swing: Delay off-beat eighth notes when the seed selects a swing
            feel. Defaults to False: notes stay on the straight grid so the
            notation view remains readable.
        swing_ratio: Position of the swung off-beat within its beat.
            Defaults to 0.6 (0.5 = straight).
        max_window_sec: Longest window composed per call; longer requests are
            truncated to start_time + max_window_sec. Defaults to 90.0.
    """

    melody_low: int = 60
    melody_high: int = 84
    apply_swing: bool = False
    swing_ratio: float = 0.6
    max_window_sec: float = 90.0

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not 0 <= self.melody_low <= 127 or not 0 <= self.melody_high <= 127:
            raise ValueError(
                f"melody range must be within [0, 127], got "
                f"[{self.melody_low}, {self.melody_high}]"
            )
        # The range must hold a full octave so octave shifting always lands inside it.
        if self.melody_high - self.melody_low < 12:
            raise ValueError(
                f"melody range must span at least 12 semitones, got "
                f"[{self.melody_low}, {self.melody_high}]"
            )
        if not 0.5 <= self.swing_ratio < 1.0:
            raise ValueError(f"swing_ratio must be in [0.5, 1.0), got {self.swing_ratio}")
        if self.max_window_sec <= 0:
            raise ValueError(f"max_window_sec must be positive, got {self.max_window_sec}")


# Pre-defined configurations

DEFAULT_PITCH_CONFIG = PitchTrackerConfig()
"""Default pitch tracker: RMS gate 0.01, trim threshold 0.2."""

DEFAULT_SEGMENTER_CONFIG = SegmenterConfig()
"""Default sweep: 2048/1024 windows, silence 0.02, more than 4 frames, ±1 semitone."""

DEFAULT_COMPOSER_CONFIG = ComposerConfig()
"""Default generator: melody in [60, 84], straight (unswung) timing."""
