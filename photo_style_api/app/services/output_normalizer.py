"""
Prediction 输出归一化

Replicate 的 output 形态不固定：单个URL字符串、URL数组、
带 url 访问器的对象（SDK 的 FileOutput），或嵌套的 {"output": [...]}。
这里先判定形态，再按形态提取，所有适用的形态结果按优先级合并。
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

class OutputShape(str, Enum):
    """输出形态，按提取优先级排列"""
    RESOLVABLE = "resolvable"
    TEXT = "text"
    SEQUENCE = "sequence"
    NESTED = "nested"

@dataclass(frozen=True)
class ArtifactRef:
    """指向一张输出图像：远程URI或内嵌的data URI"""
    value: str

    @property
    def is_inline(self) -> bool:
        return self.value.startswith("data:")

def detect_shapes(raw: Any) -> List[OutputShape]:
    """返回 raw 匹配的全部形态（可能为空）"""
    shapes = []
    if raw is None:
        return shapes
    if hasattr(raw, "url") and not isinstance(raw, (str, Mapping)):
        shapes.append(OutputShape.RESOLVABLE)
    if isinstance(raw, str):
        shapes.append(OutputShape.TEXT)
    if isinstance(raw, (list, tuple)):
        shapes.append(OutputShape.SEQUENCE)
    if isinstance(raw, Mapping) and isinstance(raw.get("output"), (list, tuple)):
        shapes.append(OutputShape.NESTED)
    return shapes

def _strings(items) -> List[str]:
    return [item for item in items if isinstance(item, str) and item]

def _from_resolvable(raw: Any) -> List[str]:
    try:
        accessor = raw.url
        value = accessor() if callable(accessor) else accessor
    except Exception as e:
        # 部分输出对象的 url 访问器是可选能力
        logger.debug(f"解析输出 url 失败，忽略: {e}")
        return []
    if isinstance(value, str) and value:
        return [value]
    return []

def _from_text(raw: str) -> List[str]:
    return [raw] if raw else []

def _from_sequence(raw) -> List[str]:
    return _strings(raw)

def _from_nested(raw: Mapping) -> List[str]:
    return _strings(raw["output"])

_EXTRACTORS: Dict[OutputShape, Callable[[Any], List[str]]] = {
    OutputShape.RESOLVABLE: _from_resolvable,
    OutputShape.TEXT: _from_text,
    OutputShape.SEQUENCE: _from_sequence,
    OutputShape.NESTED: _from_nested,
}

def normalize_output(raw: Any) -> List[ArtifactRef]:
    """
    将任意形态的 output 转为有序的 ArtifactRef 列表

    空列表是合法结果，由调用方判定为“模型返回为空”。
    """
    refs: List[ArtifactRef] = []
    for shape in detect_shapes(raw):
        refs.extend(ArtifactRef(value) for value in _EXTRACTORS[shape](raw))
    return refs
