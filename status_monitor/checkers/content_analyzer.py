"""内容分析器

HTTP 层返回成功时，检查响应体是否包含已登记的问题特征文本，
命中则用规则的状态和消息覆盖判定。
"""

import re
from typing import Optional, Sequence

from .base import strip_html, normalize_text
from ..models.status import ProbeResult, CheckVerdict
from ..models.target import ContentSignature
from ..utils.log_manager import get_logger

_PUNCTUATION_RE = re.compile(r'[^\w\s]', re.UNICODE)

logger = get_logger('checker.content_analyzer')


def strip_punctuation(text: str) -> str:
    return normalize_text(_PUNCTUATION_RE.sub(' ', text))


def _matches(signature: ContentSignature, text: str, bare_text: str) -> bool:
    phrase = normalize_text(signature.phrase)
    if not phrase:
        return False
    if phrase in text:
        return True
    bare_phrase = strip_punctuation(phrase)
    return bool(bare_phrase) and bare_phrase in bare_text


def find_signature(body: str, signatures: Sequence[ContentSignature]) -> Optional[ContentSignature]:
    """
    返回响应体中命中的最严重的特征规则，严重程度相同时取先登记的规则

    先在空白规范化后的文本中匹配，再在去掉标点的文本中匹配，
    这样换行、多余空格和标点差异都不会影响结果。
    """
    if not body or not signatures:
        return None

    text = normalize_text(strip_html(body))
    bare_text = strip_punctuation(text)

    found: Optional[ContentSignature] = None
    for signature in signatures:
        if not _matches(signature, text, bare_text):
            continue
        if found is None or signature.state.severity > found.state.severity:
            found = signature
    return found


def analyze(probe: ProbeResult, signatures: Sequence[ContentSignature],
            target_id: str = '') -> CheckVerdict:
    """
    根据探测结果和特征规则给出根页面判定

    Args:
        probe: 探测结果
        signatures: 目标登记的特征规则
        target_id: 仅用于日志

    Returns:
        CheckVerdict: 未命中或不适用时与HTTP层判定一致
    """
    verdict = CheckVerdict.from_probe(probe)
    if not probe.is_success:
        return verdict

    signature = find_signature(probe.body or '', signatures)
    if signature is None:
        return verdict

    logger.info(f"目标 {target_id} 命中内容特征 '{signature.phrase}'，"
                f"状态覆盖为 {signature.state.value}")
    return CheckVerdict(
        state=signature.state,
        status_code=probe.status_code,
        elapsed_ms=probe.elapsed_ms,
        error_message=signature.message,
    )
