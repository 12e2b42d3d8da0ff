import subprocess
import sys

from watchfiles import run_process

from sms_processor.env import WATCH_PATH


def _run_worker() -> None:
    subprocess.run([sys.executable, "-m", "sms_processor.worker"], check=False)


if __name__ == "__main__":
    run_process(WATCH_PATH, target=_run_worker)
