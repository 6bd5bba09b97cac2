from typing import TYPE_CHECKING

import bittensor as bt

if TYPE_CHECKING:
    from ciaudit.classes import AuditReport


def configure_logging(debug: bool = False) -> None:
    """Route audit diagnostics through bt.logging at the requested verbosity."""
    if debug:
        bt.logging.set_debug(True)


def log_report_summary(report: 'AuditReport') -> None:
    """Log the per-severity tally of a finished audit."""
    from ciaudit.classes import Severity

    bt.logging.info(f'*****{report.name} summary*****')
    bt.logging.info(f'  ├─ Checked: {report.checked} | Skipped: {report.skipped}')

    counts = ' | '.join(f'{severity.value}: {report.count(severity)}' for severity in Severity)
    bt.logging.info(f'  ├─ Findings: {counts}')

    if report.has_errors:
        bt.logging.error(f'  └─ {len(report.errors)} error(s) found')
        for finding in report.errors:
            bt.logging.debug(f'  │   {finding}')
    else:
        bt.logging.info('  └─ No errors found')
