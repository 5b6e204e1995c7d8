"""
Expression Rewriter
Migrates n8n expressions that read the old trigger's output so they read the
webhook payload instead.

A chat or form trigger emits its fields at the top level of `$json`; a webhook
nests the request payload under `$json.body`. Every string leaf of a node's
parameters goes through the same ordered passes:

    1. $('<trigger name>')                 -> $('Webhook')
    2. $('Webhook').first().json.x         -> $('Webhook').first().json.body.x
       $('Webhook').last().json.x          -> $('Webhook').first().json.body.x
       $('Webhook').item.json.x            -> $('Webhook').item.json.body.x
    3. $('Webhook')...json.body['Full Name'] -> $('Webhook')...json.body.Full_Name
    4. flavor shorthand, e.g. {{$json.message}} -> {{ $json.body.message }}

Passes 2 and 3 only match the `$('Webhook')` token, so they rely on pass 1
having run first. A webhook call carries a single item, which is why `last()`
collapses to `first()`.

Pass 2 is unconditional: a form field literally named `body` ends up as
`json.body.body`. The pipeline is therefore applied once per transformation,
to a freshly cloned graph.
"""
import re
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from flowfront.models.schemas import FormField, to_webhook_key


WEBHOOK_NODE_NAME = "Webhook"
WEBHOOK_REFERENCE = "$('Webhook')"

AGENT_PROMPT_TYPE = "define"
AGENT_PROMPT_TEXT = "={{ $json.body.message }}"
AGENT_SYSTEM_MESSAGE = "You are a helpful assistant"

CHAT_FIELDS = ("message", "sessionId", "timestamp")

ShorthandPatterns = List[Tuple[str, str]]

# `.json` followed by a field access
_ACCESSOR_RE = re.compile(
    r"\$\('Webhook'\)\.(first\(\)|last\(\)|item)\.json(?=[.\[])"
)
_BRACKET_RE = re.compile(
    r"""\$\('Webhook'\)\.(first\(\)|last\(\)|item)\.json\.body\[(?:'([^']+)'|"([^"]+)")\]"""
)


def _accessor(name: str) -> str:
    return "first()" if name == "last()" else name


def chat_shorthand_patterns() -> ShorthandPatterns:
    """Spaced and unspaced `{{ $json.<field> }}` templates of the chat payload."""
    patterns = []
    for field in CHAT_FIELDS:
        target = "{{ $json.body.%s }}" % field
        patterns.append(("{{ $json.%s }}" % field, target))
        patterns.append(("{{$json.%s}}" % field, target))
    return patterns


def form_shorthand_patterns(fields: Iterable[FormField]) -> ShorthandPatterns:
    """Bracket and dot shorthand for every declared form field label."""
    patterns = []
    for field in fields:
        label = field.fieldLabel
        target = "{{ $json.body.%s }}" % to_webhook_key(label)
        patterns.extend([
            ('{{ $json["%s"] }}' % label, target),
            ("{{ $json['%s'] }}" % label, target),
            ("{{ $json.%s }}" % label, target),
            ('{{$json["%s"]}}' % label, target),
            ("{{$json['%s']}}" % label, target),
            ("{{$json.%s}}" % label, target),
        ])
    return patterns


class ExpressionRewriter:
    """Rewrites parameter trees for one trigger name and one shorthand set."""

    def __init__(self, trigger_name: str, shorthand: Sequence[Tuple[str, str]] = ()):
        self.trigger_name = trigger_name
        self.shorthand = list(shorthand)
        # The name is matched literally, in either quote style.
        self._reference_re = re.compile(
            r"""\$\((['"])""" + re.escape(trigger_name) + r"""\1\)"""
        )

    def retarget_references(self, text: str) -> str:
        return self._reference_re.sub(lambda _: WEBHOOK_REFERENCE, text)

    @staticmethod
    def migrate_accessors(text: str) -> str:
        return _ACCESSOR_RE.sub(
            lambda m: "%s.%s.json.body" % (WEBHOOK_REFERENCE, _accessor(m.group(1))),
            text
        )

    @staticmethod
    def normalize_brackets(text: str) -> str:
        def _dot(m: "re.Match[str]") -> str:
            key = m.group(2) if m.group(2) is not None else m.group(3)
            return "%s.%s.json.body.%s" % (
                WEBHOOK_REFERENCE, _accessor(m.group(1)), to_webhook_key(key)
            )
        return _BRACKET_RE.sub(_dot, text)

    def migrate_shorthand(self, text: str) -> str:
        for source, target in self.shorthand:
            text = text.replace(source, target)
        return text

    def rewrite_string(self, text: str) -> str:
        text = self.retarget_references(text)
        text = self.migrate_accessors(text)
        text = self.normalize_brackets(text)
        return self.migrate_shorthand(text)

    def rewrite(self, value: Any) -> Any:
        """Depth-first copy of `value` with every string leaf rewritten."""
        if isinstance(value, str):
            return self.rewrite_string(value)
        if isinstance(value, list):
            return [self.rewrite(item) for item in value]
        if isinstance(value, dict):
            return {key: self.rewrite(item) for key, item in value.items()}
        return value


def apply_agent_override(parameters: Dict[str, Any]) -> Dict[str, Any]:
    """Point an agent at the webhook message instead of pattern-rewriting it."""
    options = parameters.get("options")
    options = dict(options) if isinstance(options, dict) else {}
    options["systemMessage"] = AGENT_SYSTEM_MESSAGE
    return {
        **parameters,
        "promptType": AGENT_PROMPT_TYPE,
        "text": AGENT_PROMPT_TEXT,
        "options": options,
    }
