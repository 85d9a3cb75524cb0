"""
证书输出解析服务
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..interfaces import CertificateParserInterface
from ..models import CertificateInfo, ExtractMode
from .error_handler import ParseError, escape_output


NOT_AFTER_PATTERN = re.compile(r'^notAfter=(.*)$', re.MULTILINE)
TIMESTAMP_PATTERN = re.compile(r'^(?P<datetime>.+\d{4})\s+(?P<zone>[A-Z]{3,4})$')
SUBJECT_CN_PATTERN = re.compile(r'^Subject: CN ?= ?(?P<cn>.+)$')

NOT_AFTER_PREFIX = "Not After : "
SAN_MARKER = "Subject Alternative Name:"
DNS_PREFIX = "DNS:"

# 'Jun  1 00:00:00 2030'，日期不补零，openssl 会用两个空格对齐
TIMESTAMP_FORMAT = '%b %d %H:%M:%S %Y'
UTC_ZONES = {'GMT', 'UTC', 'UT'}


def parse_timestamp(value: str) -> datetime:
    """
    解析 openssl 的时间格式：'Jun 1 00:00:00 2030 GMT'

    Args:
        value: 时间字符串

    Returns:
        datetime: 带时区的时间

    Raises:
        ValueError: 格式不匹配
    """
    match = TIMESTAMP_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"time data {value!r} does not match format 'Mon D HH:MM:SS YYYY TZ'")

    parsed = datetime.strptime(match.group('datetime'), TIMESTAMP_FORMAT)
    zone = match.group('zone')
    if zone in UTC_ZONES:
        tzinfo = timezone.utc
    else:
        # 无法识别的时区缩写按零偏移处理
        tzinfo = timezone(timedelta(0), zone)
    return parsed.replace(tzinfo=tzinfo)


class CertificateOutputParser(CertificateParserInterface):
    """openssl x509 输出解析器"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def parse(self, text: str, mode: ExtractMode) -> CertificateInfo:
        """按提取方式解析"""
        if mode is ExtractMode.DATES:
            return self.parse_dates(text)
        return self.parse_text(text)

    def parse_dates(self, text: str) -> CertificateInfo:
        """
        解析 'openssl x509 -noout -dates' 输出

        输出中必须恰好有一行 notAfter=<时间>。

        Args:
            text: 命令输出

        Returns:
            CertificateInfo: 只包含过期时间的证书信息

        Raises:
            ParseError: notAfter 行缺失、重复或时间格式错误
        """
        matches = NOT_AFTER_PATTERN.findall(text)
        if len(matches) != 1:
            raise ParseError(
                f"could not find notAfter in result: {escape_output(text)}",
                text=text
            )

        value = matches[0].strip()
        try:
            not_after = parse_timestamp(value)
        except ValueError as e:
            raise ParseError(f"{e}:notAfter={escape_output(value)}", text=text) from e

        return CertificateInfo(not_after=not_after)

    def parse_text(self, text: str) -> CertificateInfo:
        """
        解析 'openssl x509 -noout -text' 输出

        提取 Subject 的 CN、Not After 以及 Subject Alternative Name 中的 DNS 名称，
        主题名称按首次出现的顺序去重。

        Args:
            text: 命令输出

        Returns:
            CertificateInfo: 证书信息

        Raises:
            ParseError: 没有 Not After 行或时间格式错误
        """
        subjects: List[str] = []
        seen = set()
        not_after: Optional[datetime] = None
        prev = ""

        def add_subject(name: str):
            if name not in seen:
                seen.add(name)
                subjects.append(name)

        for raw_line in text.splitlines():
            line = raw_line.strip()

            match = SUBJECT_CN_PATTERN.match(line)
            if match:
                add_subject(match.group('cn'))

            if line.startswith(NOT_AFTER_PREFIX):
                try:
                    not_after = parse_timestamp(line[len(NOT_AFTER_PREFIX):])
                except ValueError as e:
                    raise ParseError(f"{e}:{escape_output(line)}", text=text) from e

            if SAN_MARKER in prev and line.startswith(DNS_PREFIX):
                for entry in line.split(","):
                    entry = entry.strip()
                    if entry.startswith(DNS_PREFIX):
                        add_subject(entry[len(DNS_PREFIX):])

            prev = line

        if not_after is None:
            raise ParseError("could not find notAfter in result", text=text)

        self.logger.debug(f"解析到证书过期时间 {not_after.isoformat()}，主题名称 {len(subjects)} 个")
        return CertificateInfo(not_after=not_after, subjects=subjects)
