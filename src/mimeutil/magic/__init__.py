"""Magic rule compilation and matching."""

from .grammar import (
    MagicRuleNode,
    OffsetSpec,
    RuleForest,
    ValueType,
    compile_file,
    compile_rules,
)
from .matcher import (
    BufferSource,
    ByteSource,
    MatchResult,
    StreamSource,
    check_for_text_plain,
    match,
    most_specific_match,
    preserved_position,
)

__all__ = [
    'MagicRuleNode',
    'OffsetSpec',
    'RuleForest',
    'ValueType',
    'compile_file',
    'compile_rules',
    'BufferSource',
    'ByteSource',
    'MatchResult',
    'StreamSource',
    'check_for_text_plain',
    'match',
    'most_specific_match',
    'preserved_position',
]
