"""Service bundle built once per process and handed to every command."""

from dataclasses import dataclass
from typing import Optional

from kairos.core.archive import Archiver, AutoArchiveTask, start_auto_archive
from kairos.core.clock import Clock, parse_timezone
from kairos.core.config import KairosConfig
from kairos.core.ledger import SessionLedger
from kairos.core.lifecycle import SessionLifecycle
from kairos.core.rules import WorkRules
from kairos.core.tracker import ProgressTracker


@dataclass
class Services:
    config: KairosConfig
    clock: Clock
    rules: WorkRules
    ledger: SessionLedger
    tracker: ProgressTracker
    lifecycle: SessionLifecycle
    archiver: Archiver
    auto_archive: Optional[AutoArchiveTask] = None

    def start_auto_archive(self) -> AutoArchiveTask:
        self.auto_archive = start_auto_archive(self.archiver)
        return self.auto_archive

    def close(self) -> None:
        if self.auto_archive is not None:
            self.auto_archive.wait(timeout=self.config.archive_wait_seconds)
            if not self.auto_archive.future.done():
                # Archive thread may still use the connection.
                return
        self.ledger.close()


def rules_from_config(config: KairosConfig) -> WorkRules:
    return WorkRules(
        weekly_goal=config.weekly_goal,
        default_break_minutes=config.default_break_minutes,
        reduced_break_weekday=config.reduced_break_weekday,
        reduced_break_minutes=config.reduced_break_minutes,
    )


def build_services(config: KairosConfig, clock: Optional[Clock] = None) -> Services:
    clock = clock or Clock(parse_timezone(config.timezone))
    rules = rules_from_config(config)
    ledger = SessionLedger(config.database_path, clock)
    return Services(
        config=config,
        clock=clock,
        rules=rules,
        ledger=ledger,
        tracker=ProgressTracker(ledger, rules, clock),
        lifecycle=SessionLifecycle(ledger, rules, clock),
        archiver=Archiver(ledger, config.history_path, clock, rules.weekly_goal),
    )
