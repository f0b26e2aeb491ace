"""
Interactive discovery session.

The session walks one connected printer through five phases, in order:

    CONTEXT          operator describes the printer (model, brand, paper, app)
    KNOWN_TRIAL      test print through every matched profile
    UNKNOWN_PROBING  ESC/POS, then D1 (ff02), then GT01 (ae01) on the
                     remaining writable characteristics, stopping once one
                     is confirmed
    CAPABILITIES     ESC/POS attribute tests on a confirmed ESC/POS char
    REPORT           assemble the DiscoveryReport

Only the operator can tell whether ink hit the paper, so every probe ends in
a yes/no question answered through an Oracle. Write failures are recorded
against the characteristic and probing moves on.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol as TypingProtocol

from .errors import NotFoundError, SessionStateError, TransportError
from .escpos import CAPABILITY_TESTS
from .gatt import GattSnapshot
from .profiles import Profile, Protocol
from .report import (
    ConfirmedCharacteristic,
    DeviceContext,
    DiscoveryReport,
    Outcome,
    ProbingResult,
)
from .stages import (
    build_protocol_test,
    d1_test_stages,
    escpos_capability_stages,
    escpos_test_stages,
    gt01_feed_stages,
)
from .transport import Channel, run_stages
from .uuids import normalize

logger = logging.getLogger(__name__)

# Time for the printer to finish printing before asking the operator
FLUSH_PAUSE_S = 1.5
# Time for a fresh subscription to settle before writing
NOTIFY_SETTLE_S = 0.2

DEFAULT_PAPER_WIDTH_MM = 58

D1_WRITE_CHAR = normalize("ff02")
D1_NOTIFY_CHAR = normalize("ff01")
GT01_WRITE_CHAR = normalize("ae01")


class Phase(Enum):
    CONTEXT = "context"
    KNOWN_TRIAL = "known_trial"
    UNKNOWN_PROBING = "unknown_probing"
    CAPABILITIES = "capabilities"
    REPORT = "report"
    DONE = "done"


@dataclass(frozen=True)
class ContextQuestion:
    key: str
    prompt: str
    default: Optional[str] = None


class Oracle(TypingProtocol):
    """Source of operator answers."""

    async def ask(self, question: ContextQuestion) -> str:
        """Free-form answer; empty string means skipped."""

    async def confirm(self, question: str) -> bool:
        """Yes/no answer about what the operator sees on the paper."""


def _question_for(protocol: Protocol, label: str) -> str:
    if protocol is Protocol.D1:
        return f"{label}: Did a black rectangular border print on the paper?"
    if protocol is Protocol.GT01:
        return f"{label}: Did the paper advance by a few millimetres?"
    return f'{label}: Did the text "{label}" appear on the paper?'


def _parse_paper_width(answer: Optional[str]) -> int:
    match = re.match(r"\s*(\d+)", answer or "")
    if match and int(match.group(1)) > 0:
        return int(match.group(1))
    return DEFAULT_PAPER_WIDTH_MM


class DiscoverySession:
    """
    Single-shot discovery state machine for one connected device.

    Args:
        device_name: Advertised device name
        ble_id: Platform BLE address/identifier
        snapshot: GATT snapshot captured at connect time
        matches: Profiles matched from the snapshot's services (database order)
        open_channel: Returns a Channel for a characteristic UUID
        device_info: Values read from the Device Information Service
        first_test_number: Last test number already used; labels continue after it
        flush_pause: Seconds to wait after a known-profile test print
        notify_settle: Seconds to wait after subscribing before writing
    """

    def __init__(
        self,
        device_name: str,
        ble_id: str,
        snapshot: GattSnapshot,
        matches: list,
        open_channel: Callable[[str], Channel],
        device_info: Optional[dict] = None,
        first_test_number: int = 0,
        flush_pause: float = FLUSH_PAUSE_S,
        notify_settle: float = NOTIFY_SETTLE_S,
    ):
        self.device_name = device_name
        self.ble_id = ble_id
        self.snapshot = snapshot
        self.matches = list(matches)
        self.device_info = dict(device_info or {})
        self.flush_pause = flush_pause
        self.notify_settle = notify_settle
        self.phase = Phase.CONTEXT

        self._open_channel = open_channel
        self._channels: dict = {}
        self._subscribed: set = set()
        self._notify_count = 0
        self._test_number = first_test_number

        self._context = DeviceContext()
        self._probing: dict = {}
        self._attempts: list = []
        self._confirmed: list = []
        self._capabilities: dict = {}
        self._skipped: list = []

    # --- State ---

    @property
    def test_number(self) -> int:
        """Number of the last test label printed."""
        return self._test_number

    @property
    def confirmed(self) -> tuple:
        return tuple(self._confirmed)

    @property
    def probing(self) -> dict:
        return dict(self._probing)

    @property
    def attempts(self) -> tuple:
        """Every probe in order, as (uuid, ProbingResult) pairs."""
        return tuple(self._attempts)

    @property
    def capabilities(self) -> dict:
        return dict(self._capabilities)

    def _expect(self, phase: Phase):
        if self.phase is not phase:
            raise SessionStateError(
                f"Cannot run {phase.value} while session is in {self.phase.value}"
            )

    def _next_label(self) -> str:
        self._test_number += 1
        return f"TEST {self._test_number}"

    def _channel(self, uuid: str) -> Channel:
        if uuid not in self._channels:
            self._channels[uuid] = self._open_channel(uuid)
        return self._channels[uuid]

    def _on_notify(self, data: bytes):
        self._notify_count += 1
        logger.debug("  Notify: %s", bytes(data).hex())

    async def _subscribe(self, uuid: str) -> bool:
        if uuid in self._subscribed:
            return True
        try:
            await self._channel(uuid).subscribe(self._on_notify)
        except TransportError as e:
            logger.warning("  Could not subscribe to %s: %s", uuid, e)
            return False
        self._subscribed.add(uuid)
        return True

    def _record(self, uuid: str, result: ProbingResult):
        self._attempts.append((uuid, result))
        existing = self._probing.get(uuid)
        if existing is not None and existing.outcome is Outcome.PRINTED:
            return
        self._probing[uuid] = result

    async def _probe(
        self,
        oracle: Oracle,
        uuid: str,
        protocol: Protocol,
        stages: list,
        question: str,
        profile_id: Optional[str] = None,
        settle: float = 0.0,
    ) -> Outcome:
        """Send one protocol test, ask the operator, record the outcome."""
        notifications_before = self._notify_count
        try:
            await run_stages(self._channel(uuid), stages)
        except TransportError as e:
            logger.warning("  Write error on %s: %s", uuid, e)
            self._record(uuid, ProbingResult(protocol, Outcome.WRITE_ERROR, profile_id))
            return Outcome.WRITE_ERROR

        if settle > 0:
            await asyncio.sleep(settle)

        notified = self._notify_count > notifications_before
        if notified:
            logger.info("  Notify received during send.")

        if await oracle.confirm(question):
            outcome = Outcome.PRINTED
            self._confirmed.append(ConfirmedCharacteristic(uuid, protocol))
        elif notified:
            outcome = Outcome.NOTIFY_ONLY
        else:
            outcome = Outcome.NO_RESPONSE

        self._record(uuid, ProbingResult(protocol, outcome, profile_id))
        return outcome

    # --- Phase 1: context ---

    def context_questions(self) -> list:
        """Questions to put to the operator, pre-filled from device info."""
        model = self.device_info.get("model")
        return [
            ContextQuestion("model", "Model number from sticker", model),
            ContextQuestion(
                "brand",
                "Brand name on the box/packaging (e.g. Peripage, Phomemo, HPRT, or skip)",
            ),
            ContextQuestion(
                "paper_width_mm",
                "Paper roll width in mm (58 or 80)",
                str(DEFAULT_PAPER_WIDTH_MM),
            ),
            ContextQuestion("app", "App used to print from phone (e.g. iPrint, PrinterOn, or skip)"),
        ]

    def apply_context(self, answers: dict) -> DeviceContext:
        """Store the operator's answers; empty answers fall back to defaults."""
        self._expect(Phase.CONTEXT)

        def answer(key: str) -> Optional[str]:
            value = (answers.get(key) or "").strip()
            return value or None

        self._context = DeviceContext(
            model=answer("model") or self.device_info.get("model"),
            brand=answer("brand"),
            paper_width_mm=_parse_paper_width(answer("paper_width_mm")),
            app=answer("app"),
        )
        self.phase = Phase.KNOWN_TRIAL
        return self._context

    async def collect_context(self, oracle: Oracle) -> DeviceContext:
        answers = {}
        for question in self.context_questions():
            answers[question.key] = await oracle.ask(question)
        return self.apply_context(answers)

    # --- Phase 2: matched profiles ---

    async def run_known_trials(self, oracle: Oracle) -> tuple:
        """Send one test print per matched profile and confirm each."""
        self._expect(Phase.KNOWN_TRIAL)

        if self.matches:
            logger.info("Known profile(s) matched: %s", ", ".join(m.id for m in self.matches))
            logger.info("Sending one test print per protocol - watch the paper.")

        for profile in self.matches:
            await self._trial_profile(oracle, profile)

        self.phase = Phase.UNKNOWN_PROBING
        return self.confirmed

    async def _trial_profile(self, oracle: Oracle, profile: Profile):
        try:
            write_char = self._require(profile.ble.write_char_uuid)
        except NotFoundError as e:
            logger.warning("  [%s] %s - skipping", profile.id, e)
            self._skipped.append(profile.id)
            return

        if profile.ble.notify_char_uuid and self.snapshot.find(profile.ble.notify_char_uuid):
            await self._subscribe(profile.ble.notify_char_uuid)

        label = self._next_label()
        logger.info("  Sending %s via [%s] (%s)...", label, profile.id, write_char.uuid)
        stages = build_protocol_test(
            profile.protocol,
            label=label,
            chunk_size=profile.ble.chunk_size,
            chunk_delay_ms=profile.ble.chunk_delay,
        )
        await self._probe(
            oracle,
            write_char.uuid,
            profile.protocol,
            stages,
            _question_for(profile.protocol, label),
            profile_id=profile.id,
            settle=self.flush_pause,
        )

    def _require(self, uuid: str):
        char = self.snapshot.find(uuid)
        if char is None:
            raise NotFoundError(f"write characteristic {uuid} not found")
        return char

    # --- Phase 3: unmatched writable characteristics ---

    def unprobed_characteristics(self) -> list:
        """Writable characteristics not declared by any matched profile."""
        known = {normalize(m.ble.write_char_uuid) for m in self.matches}
        return [c for c in self.snapshot.writable() if c.uuid not in known]

    async def run_unknown_probing(self, oracle: Oracle) -> tuple:
        """Run rounds A (ESC/POS), B (D1) and C (GT01) until something is confirmed."""
        self._expect(Phase.UNKNOWN_PROBING)

        unprobed = self.unprobed_characteristics()
        unprobed_uuids = {c.uuid for c in unprobed}

        if unprobed and self._confirmed:
            logger.info("Protocol already confirmed - skipping probing of %d char(s).", len(unprobed))
        elif unprobed:
            logger.info("PROBING %d unrecognised writable char(s) - watch the printer.", len(unprobed))
            await self._round_escpos(oracle, unprobed)
            if not self._confirmed and D1_WRITE_CHAR in unprobed_uuids:
                await self._round_d1(oracle)
            if not self._confirmed and GT01_WRITE_CHAR in unprobed_uuids:
                await self._round_gt01(oracle)

        self.phase = Phase.CAPABILITIES
        return self.confirmed

    async def _round_escpos(self, oracle: Oracle, unprobed: list):
        logger.info("Round A: ESC/POS - sending a numbered text print to each char")
        for char in unprobed:
            label = self._next_label()
            logger.info("  Sending %s to %s...", label, char.uuid)
            await self._probe(
                oracle,
                char.uuid,
                Protocol.ESCPOS,
                escpos_test_stages(label),
                _question_for(Protocol.ESCPOS, label),
            )

    async def _round_d1(self, oracle: Oracle):
        label = self._next_label()
        logger.info("Round B: D1 family - sending %s (black rectangular border) via ff02...", label)
        if self.snapshot.find(D1_NOTIFY_CHAR):
            if await self._subscribe(D1_NOTIFY_CHAR) and self.notify_settle > 0:
                await asyncio.sleep(self.notify_settle)
        await self._probe(
            oracle,
            D1_WRITE_CHAR,
            Protocol.D1,
            d1_test_stages(),
            _question_for(Protocol.D1, label),
        )

    async def _round_gt01(self, oracle: Oracle):
        label = self._next_label()
        logger.info("Round C: GT01 - sending %s (feed command) via ae01...", label)
        await self._probe(
            oracle,
            GT01_WRITE_CHAR,
            Protocol.GT01,
            gt01_feed_stages(),
            _question_for(Protocol.GT01, label),
        )

    # --- Phase 4: ESC/POS capabilities ---

    async def run_capability_tests(self, oracle: Oracle) -> dict:
        """Test bold, double-width, double-height and underline on a confirmed ESC/POS char."""
        self._expect(Phase.CAPABILITIES)

        target = next((c for c in self._confirmed if c.protocol is Protocol.ESCPOS), None)
        if target is not None:
            logger.info("ESC/POS CAPABILITY TESTS on %s", target.uuid)
            channel = self._channel(target.uuid)
            for test in CAPABILITY_TESTS:
                label = self._next_label()
                logger.info("  Sending %s: %s...", label, test.key)
                try:
                    await run_stages(channel, escpos_capability_stages(test, label))
                except TransportError as e:
                    logger.warning("  Write error: %s", e)
                    self._capabilities[test.key] = Outcome.WRITE_ERROR
                    continue
                self._capabilities[test.key] = await oracle.confirm(f"{label}: {test.question}")

        self.phase = Phase.REPORT
        return self.capabilities

    # --- Phase 5: report ---

    def build_report(self) -> DiscoveryReport:
        self._expect(Phase.REPORT)

        if not self._confirmed:
            logger.info("No write protocol confirmed for %s.", self.device_name)

        report = DiscoveryReport(
            device_name=self.device_name,
            ble_id=self.ble_id,
            device_info=dict(self.device_info),
            context=self._context,
            profile_matches=tuple(m.id for m in self.matches),
            confirmed=tuple(self._confirmed),
            capabilities=dict(self._capabilities),
            services=self.snapshot.services,
            characteristics=self.snapshot.characteristics,
            probing=dict(self._probing),
            attempts=tuple(self._attempts),
            skipped_profiles=tuple(self._skipped),
        )
        self.phase = Phase.DONE
        return report

    async def run(self, oracle: Oracle) -> DiscoveryReport:
        """Run every phase in order and return the report."""
        await self.collect_context(oracle)
        await self.run_known_trials(oracle)
        await self.run_unknown_probing(oracle)
        await self.run_capability_tests(oracle)
        return self.build_report()
