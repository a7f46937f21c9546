"""Prompt templates and language support for commit message generation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import GenerationConfig

IDENTITY = "You are to act as the author of a commit message in git."


# Language mapping for multi-language support
LANGUAGE_MAP = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "zh-cn": "Simplified Chinese",
    "zh-tw": "Traditional Chinese",
    "nl": "Dutch",
    "pl": "Polish",
    "tr": "Turkish",
    "sv": "Swedish",
}

# One-shot example shown to the model before the real diff
EXAMPLE_DIFF = """diff --git a/src/server.ts b/src/server.ts
index ad4db42..f3b18a9 100644
--- a/src/server.ts
+++ b/src/server.ts
@@ -10,7 +10,7 @@ import {
 initWinstonLogger();

 const app = express();
-const port = 7799;
+const PORT = 7799;

 app.use(express.json());

@@ -34,6 +34,6 @@ app.use((_, res, next) => {
 // ROUTES
 app.use(PROTECTED_ROUTER_URL, protectedRouter);

-app.listen(port, () => {
-  console.log(`Server listening on port ${port}`);
+app.listen(process.env.PORT || PORT, () => {
+  console.log(`Server listening on port ${PORT}`);
 });"""

EXAMPLE_FIX = "fix(server.ts): change port variable case from lowercase port to uppercase PORT"
EXAMPLE_FEAT = "feat(server.ts): add support for process.env.PORT environment variable"
EXAMPLE_DESCRIPTION = (
    "The port variable is now named PORT, which improves consistency with the naming "
    "conventions as PORT is a constant. Support for an environment variable allows the "
    "application to be more flexible as it can now run on any available port specified "
    "via the process.env.PORT environment variable."
)


def get_language_name(language: str) -> str:
    """Map a language code to the name used in the prompt."""
    return LANGUAGE_MAP.get(language.lower(), language)


def build_system_prompt(config: GenerationConfig) -> str:
    """Build the system prompt for the given generation settings."""
    emoji = (
        "Use GitMoji convention to preface the commit."
        if config.emoji
        else "Do not preface the commit with anything."
    )
    description = (
        "Add a short description of WHY the changes are done after the commit message. "
        'Don\'t start it with "This commit", just describe the changes.'
        if config.description
        else "Don't add any descriptions to the commit, only commit message."
    )
    return (
        f"{IDENTITY} Your mission is to create clean and comprehensive commit messages "
        "as per the conventional commit convention and explain WHAT were the changes "
        "and mainly WHY the changes were done. I'll send you an output of 'git diff' "
        "for a single commit, and you are to convert it into a commit message.\n"
        f"{emoji}\n"
        f"{description}\n"
        "Use the present tense. Lines must not be longer than 74 characters. "
        f"Use {get_language_name(config.language)} for the commit message."
    )


def build_example_answer(config: GenerationConfig) -> str:
    """The assistant turn answering EXAMPLE_DIFF."""
    lines = [
        f"{'🐛 ' if config.emoji else ''}{EXAMPLE_FIX}",
        f"{'✨ ' if config.emoji else ''}{EXAMPLE_FEAT}",
    ]
    if config.description:
        lines.append(EXAMPLE_DESCRIPTION)
    return "\n".join(lines)


def build_messages(diff: str, config: GenerationConfig) -> list[dict[str, str]]:
    """Build the chat messages for one commit diff.

    Args:
        diff: The commit's patch text
        config: Generation settings

    Returns:
        Chat messages ready for a provider
    """
    # Truncate diff if too long
    truncated_diff = diff[: config.max_diff_chars] if len(diff) > config.max_diff_chars else diff

    return [
        {"role": "system", "content": build_system_prompt(config)},
        {"role": "user", "content": EXAMPLE_DIFF},
        {"role": "assistant", "content": build_example_answer(config)},
        {"role": "user", "content": truncated_diff},
    ]
