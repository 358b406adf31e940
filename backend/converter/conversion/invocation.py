"""ffmpeg argument vectors for each conversion scenario.

Vectors exclude the binary and global flags; TranscodingEngine.run adds those.
Every input and output name refers to the engine's working filesystem.
"""
from converter.config import AUDIO_BITRATE, FRAME_RATE, STILL_CLIP_SECONDS
from converter.conversion.classifier import normalize_format
from converter.conversion.models import Scenario

VIDEO_CODECS = {
    "mp4": "libx264",
    "webm": "libvpx-vp9",
    "gif": "gif",
    "mov": "libx264",
    "mkv": "libx264",
}
DEFAULT_VIDEO_CODEC = "libx264"

AUDIO_CODECS = {
    "mp3": "libmp3lame",
    "aac": "aac",
    "m4a": "aac",
    "ogg": "libvorbis",
    "wav": "pcm_s16le",
    "flac": "flac",
    "webm": "libopus",
    "opus": "libopus",
}
DEFAULT_AUDIO_CODEC = "aac"

# Encoders that take no bitrate
LOSSLESS_AUDIO_CODECS = {"pcm_s16le", "flac"}

EVEN_SCALE = "scale=trunc(iw/2)*2:trunc(ih/2)*2"
FRAME_PATTERN = "frame-%04d.png"


def video_codec_for(target_format: str) -> str:
    return VIDEO_CODECS.get(normalize_format(target_format), DEFAULT_VIDEO_CODEC)


def audio_codec_for(target_format: str) -> str:
    return AUDIO_CODECS.get(normalize_format(target_format), DEFAULT_AUDIO_CODEC)


def frame_name(prefix: str, index: int) -> str:
    return f"{prefix}frame-{index:04d}.png"


def _video_output(target_format: str) -> list[str]:
    codec = video_codec_for(target_format)
    args = ["-c:v", codec]
    if codec != "gif":
        args += ["-pix_fmt", "yuv420p"]
    return args


def _audio_output(target_format: str) -> list[str]:
    codec = audio_codec_for(target_format)
    args = ["-c:a", codec]
    if codec not in LOSSLESS_AUDIO_CODECS:
        args += ["-b:a", AUDIO_BITRATE]
    return args


def build(
    scenario: Scenario,
    input_name: str,
    output_name: str,
    target_format: str,
    palette_name: str = "palette.png",
) -> list[str]:
    """Argument vector for the main engine pass of a scenario.

    VIDEO_TO_GIF returns the palette-use pass, which reads palette_name as its
    second input (written beforehand by build_palette). For
    ANIMATED_IMAGE_TO_VIDEO, input_name is the frame-sequence pattern.
    """
    fmt = normalize_format(target_format)
    if scenario == Scenario.IMAGE_TO_IMAGE:
        return ["-i", input_name, "-frames:v", "1", output_name]
    if scenario == Scenario.IMAGE_TO_VIDEO:
        return [
            "-loop", "1",
            "-t", str(STILL_CLIP_SECONDS),
            "-i", input_name,
            *_video_output(fmt),
            "-vf", EVEN_SCALE,
            "-r", str(FRAME_RATE),
            output_name,
        ]
    if scenario == Scenario.VIDEO_TO_IMAGE:
        return [
            "-i", input_name,
            "-vf", "scale=iw:-1",
            "-q:v", "2",
            "-frames:v", "1",
            output_name,
        ]
    if scenario == Scenario.VIDEO_TO_VIDEO:
        return ["-i", input_name, *_video_output(fmt), *_audio_output(fmt), output_name]
    if scenario in (Scenario.AUDIO_TO_AUDIO, Scenario.VIDEO_TO_AUDIO):
        return ["-i", input_name, "-vn", *_audio_output(fmt), output_name]
    if scenario == Scenario.ANIMATED_IMAGE_TO_VIDEO:
        return build_frame_sequence(input_name, output_name, fmt)
    if scenario == Scenario.VIDEO_TO_GIF:
        return build_gif(input_name, palette_name, output_name)
    raise ValueError(f"Unknown scenario: {scenario}")


def build_palette(input_name: str, palette_name: str) -> list[str]:
    return ["-i", input_name, "-filter_complex", "[0:v] palettegen", palette_name]


def build_gif(input_name: str, palette_name: str, output_name: str) -> list[str]:
    return [
        "-i", input_name,
        "-i", palette_name,
        "-filter_complex", "[0:v][1:v] paletteuse",
        output_name,
    ]


def build_frame_sequence(pattern: str, output_name: str, target_format: str) -> list[str]:
    return [
        "-framerate", str(FRAME_RATE),
        "-i", pattern,
        *_video_output(target_format),
        "-vf", EVEN_SCALE,
        "-r", str(FRAME_RATE),
        output_name,
    ]
