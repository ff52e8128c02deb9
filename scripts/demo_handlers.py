from eventizer.core import log

lg = log.get("demo.handlers")


def on_progress(payload):
    lg.info("progress i=%s pct=%.1f", payload["i"], payload["pct"])


def on_failed(payload):
    raise RuntimeError(f"job {payload['i']} failed")


def on_done(_):
    lg.info("done")


def on_failed_observed(payload):
    lg.info("failure observed i=%s", payload["i"])
