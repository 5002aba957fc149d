"""Tests for system, summarization and suggestion prompts."""

from __future__ import annotations

import json

from dandiset_assistant.conversation.models import AssistantMessage, UserMessage
from dandiset_assistant.prompts import (
    GUARDRAIL_PHRASES,
    INITIAL_SUGGESTIONS_PROMPT,
    METADATA_CHECKLIST,
    build_summarization_prompt,
    build_system_prompt,
)
from dandiset_assistant.toolkit import get_all_tools


class TestSystemPrompt:
    def test_empty_context(self):
        prompt = build_system_prompt()

        assert "- Dandiset ID: (not loaded)" in prompt
        assert "No metadata is currently loaded." in prompt
        assert "No modifications have been made to the metadata." in prompt
        assert "(Documentation not yet loaded)" in prompt
        assert "(Schema not yet loaded)" in prompt

    def test_guardrails_and_checklist(self):
        prompt = build_system_prompt()

        for tag in ("#irrelevant", "#personal-info", "#manipulation"):
            assert tag in prompt
        assert all(phrase in prompt for phrase in GUARDRAIL_PHRASES)
        assert f"- [ ] {METADATA_CHECKLIST[0]}" in prompt
        assert "```suggestions" in prompt

    def test_loaded_context(self, metadata, dandiset_schema):
        modified = dict(metadata, name="Renamed")

        prompt = build_system_prompt(
            dandiset_id="000123",
            version="draft",
            original=metadata,
            modified=modified,
            docs="# Best practices",
            schema=dandiset_schema,
            tools=get_all_tools(),
        )

        assert "- Dandiset ID: 000123" in prompt
        assert "- Version: draft" in prompt
        assert json.dumps(metadata, indent=2) in prompt
        assert '"name": "Renamed"' in prompt
        assert "# Best practices" in prompt
        assert '"maxLength": 150' in prompt
        for name in ("propose_metadata_change", "fetch_url", "lookup_ontology_term"):
            assert f"## {name}" in prompt
        assert prompt.index("## propose_metadata_change") < prompt.index("## fetch_url")


class TestSummarizationPrompt:
    def test_contains_transcript(self):
        prompt = build_summarization_prompt([
            UserMessage(content="Fix the title"),
            AssistantMessage(content="Done"),
        ])

        head, transcript = prompt.split("\n\nHere is the full conversation:\n\n")
        assert head.startswith("Create a thorough summary")
        assert transcript.startswith("USER:\nFix the title\n")
        assert "ASSISTANT:\nDone" in transcript


def test_initial_suggestions_prompt_asks_for_block():
    assert "suggestions code block" in INITIAL_SUGGESTIONS_PROMPT
