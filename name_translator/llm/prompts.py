"""
Naming Prompts

内置的命名策略模板，以及进程级的"当前默认模板"存储。

模板中的占位符 {inputName} / {locale} 通过字面替换填充（只替换第一次出现），
模板本身包含 JSON 示例，所以不能使用 str.format。
"""

from dataclasses import dataclass

import structlog

from ..errors import InvalidInput

logger = structlog.get_logger()

NAME_PLACEHOLDER = "{inputName}"
LOCALE_PLACEHOLDER = "{locale}"
DEFAULT_LOCALE = "en"

_JSON_FORMAT = """Return valid JSON in the following format only:
{
  "primary": {
    "name": "%(name_hint)s",
    "explanation": "%(explanation_hint)s"
  },
  "alternatives": [
    {
      "name": "%(name_hint)s",
      "explanation": "%(explanation_hint)s"
    },
    {
      "name": "%(name_hint)s",
      "explanation": "%(explanation_hint)s"
    }
  ]
}

Output ONLY valid JSON, no other text."""


def _json_format(name_hint: str, explanation_hint: str) -> str:
    return _JSON_FORMAT % {"name_hint": name_hint, "explanation_hint": explanation_hint}


# ==============================================
# Surname-phonetic (default)
# ==============================================
SURNAME_PHONETIC_PROMPT = """You are an expert in Chinese name transliteration and phonetic adaptation.

The user's provided name is: "{inputName}"
The user's default language/region is: "{locale}"

CRITICAL INSTRUCTIONS:
Create SHORT Chinese names where BOTH the surname AND given name phonetically match the original name.

REQUIREMENTS:
1. STRUCTURE: Must have a proper Chinese name structure
   - Surname: 1 character (from actual Chinese surnames)
   - Given name: 1-2 characters
   - Total: 2-3 characters

2. SURNAME SELECTION (PHONETIC MATCHING PRIORITY):
   - The surname MUST match the sound of the first syllable(s) of the original name
   - Use these phonetically-matched Chinese surnames:
     * Li/Lee sounds → 李(Lǐ), 黎(Lí)
     * Ma/Mo sounds → 马(Mǎ), 莫(Mò)
     * Wang/Wong sounds → 王(Wáng)
     * Zhang/Zha sounds → 张(Zhāng)
     * Chen/Chan sounds → 陈(Chén)
     * Liu/Lu sounds → 刘(Liú), 卢(Lú)
     * Wu sounds → 吴(Wú)
     * Zhou/Jo sounds → 周(Zhōu)
     * Xu/Shu sounds → 徐(Xú)
     * Sun sounds → 孙(Sūn)
     * Gao/Go sounds → 高(Gāo)
     * Lin sounds → 林(Lín)
     * He/Ho sounds → 何(Hé)
     * Luo/Lo/Ro sounds → 罗(Luó)
     * Mai/Mi sounds → 麦(Mài)
     * Tang/Tom sounds → 汤(Tāng)
     * Dai/Da sounds → 戴(Dài)
   - If no surname matches well, use a surname that sounds close to the beginning of the name

3. GIVEN NAME (SOUND SIMILARITY):
   - Match the remaining pronunciation of the original name
   - Use transliteration characters: 杰(jié), 克(kè), 尔(ěr), 文(wén), 丽(lì), 莎(shā), 斯(sī), 特(tè), 森(sēn), 逊(xùn), 伦(lún), 米(mǐ), 卡(kǎ), 娜(nà), 拉(lā), 维(wéi), 德(dé), 安(ān), 伯(bó), 瑞(ruì), 凯(kǎi), 艾(ài), 玛(mǎ), 娅(yà)

EXAMPLES (FOLLOW THIS STYLE):
- "Michael" → 麦克尔 (Mài Kè Ěr) - "Mai" matches "Mi-", "ke-er" matches "-chael"
- "David" → 戴维 (Dài Wéi) - "Dai" matches "Da-", "wei" matches "-vid"
- "Lisa" → 丽莎 (Lì Shā) - "Li" matches "Li-", "sha" matches "-sa"
- "Kevin" → 凯文 (Kǎi Wén) - sounds like "Ke-vin"
- "Tom" → 汤姆 (Tāng Mǔ) - "Tang" matches "Tom"
- "Monica" → 莫妮卡 (Mò Nī Kǎ) - "Mo" matches "Mo-"

WHAT NOT TO DO:
- DO NOT pick random surnames unrelated to the sound
- DO NOT create 4+ character names
- DO NOT make overly complex transliterations

""" + _json_format(
    "2-3 Character Chinese Name",
    "Pinyin and explanation of how BOTH surname and given name match the original sound",
)


# ==============================================
# Meaning-based
# ==============================================
MEANING_BASED_PROMPT = """You are an expert in Chinese naming culture.

The user's provided name is: "{inputName}"
The user's default language/region is: "{locale}"

Create Chinese names that carry the MEANING or spirit of the original name rather than its sound.

REQUIREMENTS:
1. Research the etymology of the original name (e.g. "Sophia" means wisdom, "Leo" means lion)
2. Pick a real Chinese surname (1 character) and a given name (1-2 characters) whose characters express that meaning
3. Prefer elegant, positive characters commonly used in given names
4. Total length: 2-3 characters
5. Explain the meaning of every character and how it relates to the original name

""" + _json_format(
    "2-3 Character Chinese Name",
    "Pinyin, meaning of each character and how it reflects the original name's meaning",
)


# ==============================================
# Bilingual (sound + meaning)
# ==============================================
BILINGUAL_PROMPT = """You are an expert in Chinese name transliteration for bilingual speakers.

The user's provided name is: "{inputName}"
The user's default language/region is: "{locale}"

Create Chinese names that sound close to the original name AND carry a pleasant meaning, so the
name works naturally in both languages (like 可口可乐 for Coca-Cola).

REQUIREMENTS:
1. The surname (1 character) should echo the first syllable of the original name
2. The given name (1-2 characters) should echo the remaining syllables with characters that have good meanings
3. Avoid characters that are only used for foreign transliteration (e.g. 斯, 尔) when a meaningful alternative sounds similar
4. Total length: 2-3 characters
5. Explain both the sound match and the meaning, in the user's language where possible

""" + _json_format(
    "2-3 Character Chinese Name",
    "Pinyin, sound match and meaning of each character",
)


# ==============================================
# Reverse direction (Chinese → English)
# ==============================================
REVERSE_DIRECTION_PROMPT = """You are an expert in cross-cultural naming.

The user's Chinese name is: "{inputName}"
The user's default language/region is: "{locale}"

Suggest English names suited to a person with this Chinese name.

REQUIREMENTS:
1. Prefer English names whose sound echoes the pinyin of the given name (e.g. 文 Wén → Wendy/Winston)
2. Also consider English names that share the meaning of the Chinese characters
3. Use common, natural English first names that are easy to pronounce
4. Explain the pinyin of the Chinese name and why each English name fits

""" + _json_format(
    "English first name",
    "Pinyin of the Chinese name and why this English name matches in sound or meaning",
)

DEFAULT_PROMPT = SURNAME_PHONETIC_PROMPT


@dataclass(frozen=True)
class PromptStrategy:
    name: str
    description: str
    template: str


STRATEGIES: dict[str, PromptStrategy] = {
    s.name: s
    for s in (
        PromptStrategy(
            name="surname_phonetic",
            description="Surname and given name both match the sound of the original name",
            template=SURNAME_PHONETIC_PROMPT,
        ),
        PromptStrategy(
            name="meaning_based",
            description="Characters chosen for the meaning of the original name",
            template=MEANING_BASED_PROMPT,
        ),
        PromptStrategy(
            name="bilingual",
            description="Sound-alike characters that also carry a good meaning",
            template=BILINGUAL_PROMPT,
        ),
        PromptStrategy(
            name="reverse_direction",
            description="English names for a Chinese name",
            template=REVERSE_DIRECTION_PROMPT,
        ),
    )
}


def get_strategy(name: str) -> PromptStrategy:
    try:
        return STRATEGIES[name]
    except KeyError:
        raise InvalidInput(
            "strategy",
            f"Unknown strategy '{name}'. Available: {', '.join(STRATEGIES)}",
        ) from None


def list_strategies() -> list[dict]:
    return [{"name": s.name, "description": s.description} for s in STRATEGIES.values()]


def render_prompt(template: str, subject: str, locale: str | None = None) -> str:
    """Fill the first occurrence of each placeholder."""
    return (
        template
        .replace(NAME_PLACEHOLDER, subject, 1)
        .replace(LOCALE_PLACEHOLDER, locale or DEFAULT_LOCALE, 1)
    )


class PromptStore:
    """Holds the mutable process-wide default template."""

    def __init__(self, default: str = DEFAULT_PROMPT):
        self._builtin = default
        self._current = default

    def get_default(self) -> str:
        return self._current

    def set_default(self, template: str) -> str:
        if not isinstance(template, str) or not template.strip():
            raise InvalidInput("prompt", "prompt cannot be empty")
        self._current = template.strip()
        logger.info(
            "prompt.updated",
            chars=len(self._current),
            has_name_placeholder=NAME_PLACEHOLDER in self._current,
        )
        return self._current

    def reset(self) -> str:
        self._current = self._builtin
        logger.info("prompt.reset")
        return self._current
