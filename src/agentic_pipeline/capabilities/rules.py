"""Pattern rules for the performance and security checks."""

import re
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

from agentic_pipeline.capabilities.ast_parser import LANGUAGE_BY_EXTENSION
from agentic_pipeline.models import FindingSeverity

JS_LANGUAGES = ["javascript", "typescript", "tsx"]


class CheckRule(BaseModel):
    """A single line-oriented pattern rule."""

    rule_id: str
    category: str  # "performance" | "security"
    severity: FindingSeverity
    description: str
    pattern: str
    languages: list[str] = Field(default_factory=list)  # empty means every language
    suggestion: str = ""

    def applies_to(self, language: str) -> bool:
        return not self.languages or language in self.languages


@lru_cache(maxsize=None)
def _compiled(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def find_rule_matches(rule: CheckRule, content: str) -> list[tuple[int, int]]:
    """Return 1-based (line, column) positions where ``rule`` matches ``content``."""
    regex = _compiled(rule.pattern)
    positions = []
    for line_number, line in enumerate(content.splitlines(), start=1):
        match = regex.search(line)
        if match:
            positions.append((line_number, match.start() + 1))
    return positions


def language_of(file_path: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(Path(file_path).suffix, "text")


def count_matches(rules: list[CheckRule], content: str, file_path: str) -> int:
    language = language_of(file_path)
    return sum(
        len(find_rule_matches(rule, content))
        for rule in rules
        if rule.applies_to(language)
    )


SECURITY_RULES = [
    CheckRule(
        rule_id="sec-eval",
        category="security",
        severity=FindingSeverity.ERROR,
        description="Dynamic code evaluation with eval()",
        pattern=r"(?<![\w.])eval\s*\(",
        suggestion="Parse the data explicitly instead of evaluating it",
    ),
    CheckRule(
        rule_id="sec-function-constructor",
        category="security",
        severity=FindingSeverity.ERROR,
        description="Code construction with new Function()",
        pattern=r"\bnew\s+Function\s*\(",
        languages=JS_LANGUAGES,
        suggestion="Use a regular function or a lookup table",
    ),
    CheckRule(
        rule_id="sec-inner-html",
        category="security",
        severity=FindingSeverity.WARNING,
        description="Raw HTML injection",
        pattern=r"\.innerHTML\s*=|dangerouslySetInnerHTML",
        languages=JS_LANGUAGES,
        suggestion="Render text content or sanitize the HTML first",
    ),
    CheckRule(
        rule_id="sec-hardcoded-secret",
        category="security",
        severity=FindingSeverity.ERROR,
        description="Hard-coded credential",
        pattern=(
            r"(?i)\b(api[_-]?key|secret|password|passwd|token)\b\s*[:=]\s*"
            r"['\"][^'\"\s]{8,}['\"]"
        ),
        suggestion="Read the credential from the environment or a secret store",
    ),
    CheckRule(
        rule_id="sec-shell-true",
        category="security",
        severity=FindingSeverity.ERROR,
        description="Subprocess invoked through the shell",
        pattern=r"shell\s*=\s*True",
        languages=["python"],
        suggestion="Pass the command as an argument list without shell=True",
    ),
    CheckRule(
        rule_id="sec-child-process-exec",
        category="security",
        severity=FindingSeverity.WARNING,
        description="Shell command execution via child_process.exec",
        pattern=r"\bexec(Sync)?\s*\(\s*[`'\"].*\$\{",
        languages=JS_LANGUAGES,
        suggestion="Use execFile/spawn with an argument array",
    ),
    CheckRule(
        rule_id="sec-unsafe-deserialization",
        category="security",
        severity=FindingSeverity.ERROR,
        description="Deserialization of untrusted data",
        pattern=r"\bpickle\.loads?\s*\(|\byaml\.load\s*\((?!.*Loader=yaml\.SafeLoader)",
        languages=["python"],
        suggestion="Use json or yaml.safe_load",
    ),
]

PERFORMANCE_RULES = [
    CheckRule(
        rule_id="perf-await-in-loop",
        category="performance",
        severity=FindingSeverity.WARNING,
        description="Sequential await inside a loop",
        pattern=r"\bfor\b.*\{.*\bawait\b|\.forEach\(\s*async\b",
        languages=JS_LANGUAGES,
        suggestion="Collect the promises and await Promise.all",
    ),
    CheckRule(
        rule_id="perf-json-deep-clone",
        category="performance",
        severity=FindingSeverity.WARNING,
        description="Deep clone through JSON serialization",
        pattern=r"JSON\.parse\(\s*JSON\.stringify\(",
        languages=JS_LANGUAGES,
        suggestion="Use structuredClone()",
    ),
    CheckRule(
        rule_id="perf-sync-fs",
        category="performance",
        severity=FindingSeverity.WARNING,
        description="Blocking filesystem call",
        pattern=r"\b(readFileSync|writeFileSync|existsSync)\s*\(",
        languages=JS_LANGUAGES,
        suggestion="Use the promise-based fs API",
    ),
    CheckRule(
        rule_id="perf-range-len",
        category="performance",
        severity=FindingSeverity.INFO,
        description="Index-based iteration with range(len(...))",
        pattern=r"\bfor\s+\w+\s+in\s+range\s*\(\s*len\s*\(",
        languages=["python"],
        suggestion="Iterate directly or use enumerate()",
    ),
    CheckRule(
        rule_id="perf-sleep",
        category="performance",
        severity=FindingSeverity.WARNING,
        description="Blocking sleep call",
        pattern=r"\btime\.sleep\s*\(",
        languages=["python"],
        suggestion="Avoid blocking sleeps on request paths",
    ),
]
