from aligned_pipeline.domain.analysis_parser import parse_analysis, split_sections

from conftest import ANALYSIS_RESPONSE

DICTATION_RESPONSE = """📝 Summary
Please send the revised budget to finance by Friday.

🗣️ Full Transcript
Send the revised budget to finance by Friday.

✅ Action Items
- [ ] Send revised budget to finance

detectedLanguages: English
meetingType: Dictation
"""


class TestParseAnalysis:
    def test_meeting_response(self):
        analysis = parse_analysis(ANALYSIS_RESPONSE, "raw transcript")

        assert analysis.transcript == "raw transcript"
        assert analysis.action_points == ["Ship the beta", "Email the customer"]
        assert analysis.detected_languages == ["English", "Hindi"]
        assert analysis.meeting_type == "planning"
        assert analysis.is_truncated is False
        assert "The team planned the release." in analysis.summary
        assert "detectedLanguages" not in analysis.summary

    def test_full_transcript_section_replaces_input_and_leaves_notes(self):
        analysis = parse_analysis(DICTATION_RESPONSE, "uh send the um budget")

        assert analysis.transcript == "Send the revised budget to finance by Friday."
        assert "Full Transcript" not in analysis.summary
        assert analysis.action_points == ["Send revised budget to finance"]
        assert analysis.meeting_type == "Dictation"

    def test_missing_sections_give_empty_fields(self):
        analysis = parse_analysis("Nothing structured here at all.", "t")

        assert analysis.transcript == "t"
        assert analysis.action_points == []
        assert analysis.detected_languages is None
        assert analysis.meeting_type is None
        assert analysis.summary == "Nothing structured here at all."

    def test_plain_bullets_are_used_without_checkboxes(self):
        text = "Action Items:\n- Book the venue\n* Confirm catering\n\nNext Steps\n- later"

        assert parse_analysis(text, "t").action_points == ["Book the venue", "Confirm catering"]

    def test_empty_markers_are_not_action_points(self):
        text = "✅ Action Items\n- None\n"

        assert parse_analysis(text, "t").action_points == []

    def test_truncation_flag_is_carried(self):
        assert parse_analysis(ANALYSIS_RESPONSE, "t", is_truncated=True).is_truncated is True

    def test_cut_off_response_never_raises(self):
        analysis = parse_analysis(ANALYSIS_RESPONSE[:90], "t")
        assert analysis.transcript == "t"


class TestSplitSections:
    def test_headers_with_markdown_and_emoji(self):
        text = "## **Summary**\nBody one\n### 🎯 Key Takeaways:\n- a\n"

        sections = split_sections(text)

        assert sections == {"Summary": "Body one", "Key Takeaways": "- a"}

    def test_first_occurrence_wins(self):
        text = "Summary\nfirst\nSummary\nsecond\n"
        assert split_sections(text)["Summary"] == "first"

    def test_label_inside_sentence_is_not_a_header(self):
        text = "We wrote a Summary of the meeting yesterday.\n"
        assert split_sections(text) == {}
