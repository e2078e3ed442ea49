"""Health probes of URLs requested by the heartbeat server."""

from __future__ import annotations

import logging
import subprocess

from falconagent import config, runtime
from falconagent.metric import MetricValue, gauge_value

log = logging.getLogger(__name__)


def probe_url(furl: str, timeout: str) -> bool:
    """Whether a HEAD request to ``furl`` answers 200 within ``timeout`` seconds."""
    cmd = [
        "curl",
        "--max-filesize",
        "102400",
        "-I",
        "-m",
        str(timeout),
        "-o",
        "/dev/null",
        "-s",
        "-w",
        "%{http_code}",
        furl,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        log.warning("probe url [%s] failed. the err is: [%s]", furl, exc)
        return False
    lines = result.stdout.splitlines()
    if not lines:
        log.warning("read retcode failed for url [%s]", furl)
        return False
    code = lines[0].strip()
    if code != "200":
        log.warning("return code [%s] is not 200. query url is [%s]", code, furl)
        return False
    return True


def url_metrics() -> list[MetricValue]:
    """One health gauge per requested URL: 1 when it answers 200, 0 otherwise."""
    urls = dict(runtime.state.report_urls)
    if not urls:
        return []
    try:
        host = config.hostname()
    except OSError:
        host = "None"
    return [
        gauge_value(
            config.URL_CHECK_HEALTH,
            1 if probe_url(furl, timeout) else 0,
            f"url={furl},timeout={timeout},src={host}",
        )
        for furl, timeout in urls.items()
    ]