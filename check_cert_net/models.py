"""
数据模型定义
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Tuple, Union


class Status(Enum):
    """检查状态（与监控代理的退出码约定一致）"""
    OK = 0
    WARNING = 1
    CRITICAL = 2

    @property
    def exit_code(self) -> int:
        return self.value


class ExtractMode(Enum):
    """证书字段提取方式"""
    TEXT = "text"    # openssl x509 -noout -text，可提取主题名称
    DATES = "dates"  # openssl x509 -noout -dates，仅有效期


@dataclass(frozen=True)
class ProbeConfig:
    """探测配置"""
    host: str = "localhost"
    port: Union[str, int] = "443"
    server_name: str = ""
    verify_server_name: bool = False
    timeout: float = 5.0
    prefer_rsa: bool = False
    prefer_ecdsa: bool = False
    critical_days: int = 14
    warning_days: int = 30
    extract_mode: ExtractMode = ExtractMode.TEXT
    merge_output: bool = False
    openssl_path: str = "openssl"

    @property
    def target(self) -> str:
        """连接目标 host:port"""
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class CommandSpec:
    """管道命令定义，每个阶段为程序名加参数"""
    stages: Tuple[Tuple[str, ...], ...]

    def __post_init__(self):
        stages = tuple(tuple(stage) for stage in self.stages)
        if len(stages) < 2:
            raise ValueError(f"管道至少需要2个阶段，实际为 {len(stages)}")
        for index, stage in enumerate(stages):
            if not stage:
                raise ValueError(f"第 {index} 个阶段为空")
        object.__setattr__(self, 'stages', stages)

    def __len__(self) -> int:
        return len(self.stages)

    def __str__(self) -> str:
        return " | ".join(" ".join(stage) for stage in self.stages)


@dataclass(frozen=True)
class PipelineResult:
    """管道执行结果"""
    stdout: bytes = b""
    stderr: bytes = b""
    error: Optional[Exception] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode('utf-8', errors='replace')

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode('utf-8', errors='replace')


@dataclass
class CertificateInfo:
    """SSL证书信息"""
    not_after: datetime
    subjects: List[str] = field(default_factory=list)

    @property
    def expiry_date(self) -> str:
        """过期日期 YYYY-MM-DD"""
        return self.not_after.strftime('%Y-%m-%d')


@dataclass(frozen=True)
class StatusVerdict:
    """检查结论"""
    status: Status
    message: str

    @property
    def exit_code(self) -> int:
        return self.status.exit_code

    @property
    def is_ok(self) -> bool:
        return self.status is Status.OK

    def format(self, name: str) -> str:
        """格式化为监控代理读取的输出行"""
        return f"{name} {self.status.name}: {self.message}"

    @classmethod
    def ok(cls, message: str) -> "StatusVerdict":
        return cls(Status.OK, message)

    @classmethod
    def warning(cls, message: str) -> "StatusVerdict":
        return cls(Status.WARNING, message)

    @classmethod
    def critical(cls, message: str) -> "StatusVerdict":
        return cls(Status.CRITICAL, message)
