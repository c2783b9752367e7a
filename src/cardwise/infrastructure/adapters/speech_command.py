"""Text-to-speech through the platform's speech command (`say` or `espeak-ng`)."""

import asyncio
import logging
import os
import re
import shutil

from cardwise.application.speech import Voice, VoiceCache, find_best_voice
from cardwise.domain.errors import SpeechUnavailable
from cardwise.domain.review.ports import SpeechPlayer

SPEECH_COMMANDS = ["say", "espeak-ng", "espeak"]
VOICE_LIST_TIMEOUT = 5.0

# `say -v ?` lines look like: "Samantha            en_US    # Hello, my name is Samantha."
_SAY_VOICE_LINE = re.compile(r"^(?P<name>.+?)\s+(?P<lang>[a-z]{2,3}[_-][A-Za-z0-9]+)\s+#")


class CommandSpeechPlayer(SpeechPlayer):
    """
    Best-effort speech. Starting a new utterance stops the previous one,
    and `speak` returns as soon as playback has started.
    """

    def __init__(self, command: str | None = None, voice_cache: VoiceCache | None = None):
        self.logger = logging.getLogger(__name__)
        self.command = command or self._detect_command()
        self._voices = voice_cache or VoiceCache()
        self._process: asyncio.subprocess.Process | None = None

    @staticmethod
    def _detect_command() -> str | None:
        for name in SPEECH_COMMANDS:
            if shutil.which(name):
                return name
        return None

    @property
    def available(self) -> bool:
        return self.command is not None

    @property
    def _is_say(self) -> bool:
        return os.path.basename(self.command or "") == "say"

    async def _list_voices(self) -> list[Voice]:
        if not self.command:
            return []
        args = [self.command, "-v", "?"] if self._is_say else [self.command, "--voices"]
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            self.logger.debug(f"Could not list voices with {self.command}: {e}")
            return []

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), VOICE_LIST_TIMEOUT)
        except asyncio.TimeoutError:
            self.logger.debug(f"Listing voices with {self.command} timed out")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            return []

        out = stdout.decode("utf-8", errors="replace")
        return parse_say_voices(out) if self._is_say else parse_espeak_voices(out)

    def build_args(self, text: str, lang: str, voices: list[Voice]) -> list[str]:
        voice = find_best_voice(voices, lang)
        if self._is_say:
            args = [self.command]
            if voice:
                args += ["-v", voice.name]
            return [*args, text]
        return [self.command, "-v", voice.lang if voice else lang.lower(), text]

    async def speak(self, text: str, lang: str) -> None:
        if not self.command:
            raise SpeechUnavailable("No speech command found (install espeak-ng, or use macOS)")

        self.stop()
        voices = await self._voices.get(self._list_voices)
        args = self.build_args(text, lang, voices)
        try:
            self._process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise SpeechUnavailable(f"Failed to start {self.command}: {e}") from e

    def stop(self) -> None:
        process = self._process
        self._process = None
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            pass


def parse_say_voices(output: str) -> list[Voice]:
    voices = []
    for line in output.splitlines():
        match = _SAY_VOICE_LINE.match(line)
        if match:
            voices.append(Voice(name=match["name"].strip(), lang=match["lang"]))
    return voices


def parse_espeak_voices(output: str) -> list[Voice]:
    """
    Parse `espeak-ng --voices`:

        Pty Language       Age/Gender VoiceName          File                 Other Languages
         5  en-us           --/M      English_(America)  gmw/en-US            (en 10)
    """
    voices = []
    for line in output.splitlines()[1:]:
        cols = line.split()
        if len(cols) >= 4:
            voices.append(Voice(name=cols[3], lang=cols[1]))
    return voices
