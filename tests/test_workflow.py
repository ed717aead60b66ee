"""Unit tests for status draft validation and the workflow manager (mocked DB)."""

from unittest.mock import MagicMock

import pytest

from taskflow.errors import Forbidden, InvalidInput
from taskflow.schemas.statuses import DEFAULT_STATUS_COLOR, StatusDraft
from taskflow.workflow import ProjectStatusWorkflow, coerce_drafts, validate_drafts


def drafts(*entries: str) -> list[dict]:
    """Status list from names; ``name:start`` / ``name:end`` set the flags."""
    out = []
    for entry in entries:
        name, _, flag = entry.partition(":")
        out.append({"name": name, "is_start": flag == "start", "is_end": flag == "end"})
    return out


class TestDefaultTemplate:

    def test_five_steps_in_order(self):
        template = ProjectStatusWorkflow.default_template()
        assert [d.name for d in template] == [
            "Planning",
            "In Progress",
            "Review",
            "Testing",
            "Completed",
        ]

    def test_single_start_and_end(self):
        template = ProjectStatusWorkflow.default_template()
        assert [d.name for d in template if d.is_start] == ["Planning"]
        assert [d.name for d in template if d.is_end] == ["Completed"]

    def test_template_passes_validation(self):
        validate_drafts(ProjectStatusWorkflow.default_template())

    def test_returns_fresh_copies(self):
        first = ProjectStatusWorkflow.default_template()
        first[0].name = "Changed"
        assert ProjectStatusWorkflow.default_template()[0].name == "Planning"


class TestStatusDraft:

    def test_legacy_field_names(self):
        draft = StatusDraft.model_validate(
            {"status_name": "Doing", "status_color": "#000000", "is_start_status": True}
        )
        assert draft.name == "Doing"
        assert draft.color == "#000000"
        assert draft.is_start is True
        assert draft.is_end is False

    def test_blank_color_uses_default(self):
        assert StatusDraft.model_validate({"name": "A", "color": ""}).color == DEFAULT_STATUS_COLOR
        assert StatusDraft.model_validate({"name": "A"}).color == DEFAULT_STATUS_COLOR

    def test_client_order_ignored(self):
        draft = StatusDraft.model_validate({"name": "A", "order": 9})
        assert not hasattr(draft, "order")

    def test_name_trimmed(self):
        assert StatusDraft.model_validate({"name": "  Review "}).name == "Review"


class TestCoerceDrafts:

    def test_none_is_empty(self):
        assert coerce_drafts(None) == []

    def test_mixed_inputs(self):
        result = coerce_drafts([StatusDraft(name="A"), {"name": "B"}])
        assert [d.name for d in result] == ["A", "B"]

    def test_blank_name_reports_position(self):
        with pytest.raises(InvalidInput, match="position 1"):
            coerce_drafts([{"name": "A"}, {"name": "   "}])

    def test_missing_name(self):
        with pytest.raises(InvalidInput):
            coerce_drafts([{"color": "#fff"}])


class TestValidateDrafts:

    def test_valid(self):
        validate_drafts(coerce_drafts(drafts("Backlog:start", "Doing", "Done:end")))

    def test_empty(self):
        with pytest.raises(InvalidInput, match="at least one status required"):
            validate_drafts([])

    def test_no_start(self):
        with pytest.raises(InvalidInput, match="exactly one start status required"):
            validate_drafts(coerce_drafts(drafts("Backlog", "Done:end")))

    def test_two_starts(self):
        with pytest.raises(InvalidInput, match="exactly one start status required"):
            validate_drafts(coerce_drafts(drafts("A:start", "B:start", "Done:end")))

    def test_no_end(self):
        with pytest.raises(InvalidInput, match="exactly one end status required"):
            validate_drafts(coerce_drafts(drafts("A:start", "B")))

    def test_start_checked_before_end(self):
        with pytest.raises(InvalidInput, match="start"):
            validate_drafts(coerce_drafts(drafts("A", "B")))

    def test_single_status_both_start_and_end(self):
        validate_drafts([StatusDraft(name="Only", is_start=True, is_end=True)])


class TestWorkflowGuards:
    """Failures that must be raised before any database access."""

    @pytest.mark.asyncio
    async def test_replace_forbidden_before_validation(self, mock_session_factory):
        workflow = ProjectStatusWorkflow(mock_session_factory)
        # The list is invalid too; the permission failure wins
        with pytest.raises(Forbidden):
            await workflow.replace_statuses(1, [], authorized=False)
        mock_session_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_replace_invalid_list_never_opens_session(self, mock_session_factory):
        workflow = ProjectStatusWorkflow(mock_session_factory)
        with pytest.raises(InvalidInput):
            await workflow.replace_statuses(1, drafts("A", "B:end"), authorized=True)
        mock_session_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_forbidden(self, mock_session_factory):
        workflow = ProjectStatusWorkflow(mock_session_factory)
        with pytest.raises(Forbidden):
            await workflow.delete_status(1, 2, authorized=False)
        mock_session_factory.assert_not_called()


class TestWorkflowQueries:

    @pytest.mark.asyncio
    async def test_list_active_statuses(self, mock_session_factory, mock_db_session):
        rows = [MagicMock(name="planning"), MagicMock(name="done")]
        mock_db_session.execute.return_value.scalars.return_value.all.return_value = rows

        workflow = ProjectStatusWorkflow(mock_session_factory)
        assert await workflow.list_active_statuses(1) == rows
        mock_db_session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_status_missing(self, mock_session_factory):
        workflow = ProjectStatusWorkflow(mock_session_factory)
        assert await workflow.get_status(99) is None

    @pytest.mark.asyncio
    async def test_seed_statuses_uses_template(self, mock_db_session):
        workflow = ProjectStatusWorkflow(MagicMock())
        rows = await workflow.seed_statuses(mock_db_session, 7)

        assert [r.order for r in rows] == [0, 1, 2, 3, 4]
        assert all(r.project_id == 7 and r.is_active for r in rows)
        mock_db_session.add_all.assert_called_once_with(rows)

    @pytest.mark.asyncio
    async def test_seed_statuses_validates_custom_list(self, mock_db_session):
        workflow = ProjectStatusWorkflow(MagicMock())
        with pytest.raises(InvalidInput):
            await workflow.seed_statuses(mock_db_session, 7, drafts("A", "B"))
        mock_db_session.add_all.assert_not_called()
