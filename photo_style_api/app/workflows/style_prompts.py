"""
风格提示词与模型输入模板

两种输入格式：
- img2img：按模型版本ID提交，输入 image/prompt/strength/guidance_scale
- edit：按模型ID提交（如 google/nano-banana），输入 prompt/image_input
"""

import math
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..schemas.request import StyleType, clamp_intensity

class InputProfile(str, Enum):
    """模型输入格式"""
    IMG2IMG = "img2img"
    EDIT = "edit"

IMG2IMG_STYLE_PROMPTS = {
    StyleType.PENCIL: "high-quality pencil sketch, clean lines, realistic shading, subtle paper texture",
    StyleType.WATERCOLOR: "watercolor painting, soft edges, gentle wash, paper texture, natural gradients",
    StyleType.OIL: "oil painting, rich brush strokes, impasto, realistic lighting, detailed texture",
    StyleType.COLORED_PENCILS: "colored pencil drawing, vivid colors, visible pencil strokes, paper grain",
    StyleType.MARKERS: "alcohol markers illustration, bold outlines, flat fills, cel shading, comic style",
    StyleType.PHOTO_REAL: "photo-realistic enhancement, crisp details, high dynamic range, natural skin tones",
}

EDIT_STYLE_PROMPTS = {
    StyleType.PENCIL: "pencil sketch style, clean lines, realistic shading, subtle paper texture",
    StyleType.WATERCOLOR: "watercolor painting style, soft edges, gentle wash, paper texture, natural gradients",
    StyleType.OIL: "oil painting style, rich brush strokes, impasto, realistic lighting, detailed texture",
    StyleType.COLORED_PENCILS: "colored pencil drawing style, vivid colors, visible pencil strokes, paper grain",
    StyleType.MARKERS: "alcohol markers illustration style, bold outlines, flat fills, cel shading, comic look",
    StyleType.PHOTO_REAL: "photo-realistic enhancement, crisp details, natural tones, high dynamic range",
}

_PROMPT_TABLES = {
    InputProfile.IMG2IMG: IMG2IMG_STYLE_PROMPTS,
    InputProfile.EDIT: EDIT_STYLE_PROMPTS,
}

def resolve_prompt(style: StyleType, prompt_override: Optional[str] = None,
                   profile: InputProfile = InputProfile.EDIT) -> str:
    """自定义提示词优先，否则使用风格预设（缺失时回退到 photo_real）"""
    if prompt_override and prompt_override.strip():
        return prompt_override.strip()
    table = _PROMPT_TABLES[profile]
    return table.get(style, table[StyleType.PHOTO_REAL])

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

def intensity_to_params(intensity: float) -> Tuple[float, int]:
    """强度映射为 (strength, guidance_scale)，映射前先裁剪到 [0, 1]"""
    intensity = clamp_intensity(intensity)
    strength = 0.3 + intensity * 0.5
    guidance = 6 + _round_half_up(intensity * 4)
    return strength, guidance

def build_prediction_input(image_data_url: str, prompt: str, intensity: float,
                           profile: InputProfile) -> Dict[str, Any]:
    """根据输入格式构造 prediction 的 input"""
    if profile == InputProfile.IMG2IMG:
        strength, guidance = intensity_to_params(intensity)
        return {
            "image": image_data_url,
            "prompt": prompt,
            "strength": strength,
            "guidance_scale": guidance,
        }
    return {
        "prompt": prompt,
        "image_input": [image_data_url],
    }
