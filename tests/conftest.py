"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
import sys
import time
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 测试用假程序
FAKE_APP = Path(__file__).parent / "fixtures" / "fake_app.py"


def fake_app_args(*args: str) -> tuple[str, ...]:
    """App(sys.executable, *fake_app_args(...)) 的参数。"""
    return ("-u", str(FAKE_APP), *args)


def pid_alive(pid: int) -> bool:
    """进程是否仍在运行（僵尸进程视为已退出）。"""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True

    stat = Path(f"/proc/{pid}/stat")
    if stat.exists():
        try:
            # 格式: pid (comm) state ...
            state = stat.read_text().rsplit(")", 1)[1].split()[0]
        except (OSError, IndexError):
            return False
        return state != "Z"
    return True


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.05) -> bool:
    """轮询直到 predicate() 为真或超时。"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def python() -> str:
    """当前 Python 解释器。"""
    return sys.executable


@pytest.fixture
def fake_app() -> Path:
    """假程序路径。"""
    return FAKE_APP


@pytest.fixture
def fresh_config():
    """测试前后重新加载配置，避免环境变量改动泄漏。"""
    from procshell.config import reload_config

    reload_config()
    yield
    reload_config()
