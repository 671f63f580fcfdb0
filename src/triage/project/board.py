"""GitHub Projects (v2) board synchronization.

This module provides the ProjectBoard class that keeps an issue's card on a
project board in line with the status the triage rules derive:
- Resolving the board from its URL
- Loading field and status option IDs once per run
- Finding the issue's card, or adding the issue to the board
- Writing the status single-select and the start/end date fields

Source:
- src/triage/github/client.py (GitHubClient.graphql)
- src/triage/project/status.py (ProjectStatus, option_name)
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional, Tuple

import structlog

from src.triage.config import ProjectSettings
from src.triage.errors import ConfigurationError
from src.triage.github.client import GitHubClient
from src.triage.models import IssueSnapshot
from src.triage.project.status import ProjectStatus, option_name


logger = structlog.get_logger()


PROJECT_URL_PATTERN = re.compile(
    r"^https?://[^/]+/(?P<kind>orgs|users)/(?P<owner>[^/]+)/projects/(?P<number>\d+)(?:/.*)?$"
)

FIELDS_QUERY = """
query($login: String!, $number: Int!) {
  %s(login: $login) {
    projectV2(number: $number) {
      id
      title
      fields(first: 100) {
        nodes {
          ... on ProjectV2FieldCommon { id name dataType }
          ... on ProjectV2SingleSelectField { options { id name } }
        }
      }
    }
  }
}
"""

ISSUE_ITEMS_QUERY = """
query($id: ID!) {
  node(id: $id) {
    ... on Issue {
      projectItems(first: 100) {
        nodes { id project { id } }
      }
    }
  }
}
"""

ADD_ITEM_MUTATION = """
mutation($project: ID!, $content: ID!) {
  addProjectV2ItemById(input: {projectId: $project, contentId: $content}) {
    item { id }
  }
}
"""

UPDATE_FIELD_MUTATION = """
mutation($project: ID!, $item: ID!, $field: ID!, $value: ProjectV2FieldValue!) {
  updateProjectV2ItemFieldValue(
    input: {projectId: $project, itemId: $item, fieldId: $field, value: $value}
  ) {
    projectV2Item { id }
  }
}
"""


@dataclass
class BoardLayout:
    """IDs resolved from the board's field definitions.

    Attributes:
        project_id: GraphQL node ID of the board.
        status_field_id: ID of the status single-select field.
        status_options: Option IDs keyed by canonical status.
        start_date_field_id: ID of the start date field, if configured.
        end_date_field_id: ID of the end date field, if configured.
    """

    project_id: str
    status_field_id: str
    status_options: Dict[ProjectStatus, str] = field(default_factory=dict)
    start_date_field_id: Optional[str] = None
    end_date_field_id: Optional[str] = None


def parse_project_url(url: str) -> Tuple[str, str, int]:
    """Split a board URL into owner kind, owner login and number.

    Args:
        url: e.g. https://github.com/orgs/acme/projects/3

    Returns:
        ("organization" or "user", owner login, project number)

    Raises:
        ConfigurationError: If the URL is not a project board URL.
    """
    match = PROJECT_URL_PATTERN.match(url.strip())
    if match is None:
        raise ConfigurationError(
            f"project.url is not a project board URL: {url!r}", setting="project.url"
        )
    kind = "organization" if match.group("kind") == "orgs" else "user"
    return kind, match.group("owner"), int(match.group("number"))


class ProjectBoard:
    """A project board the triage status is mirrored to.

    Attributes:
        github_client: Client authorized for project writes.
        owner_kind: "organization" or "user".
        owner: Login owning the board.
        number: Board number.
        settings: Field and status option names.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        owner_kind: str,
        owner: str,
        number: int,
        settings: ProjectSettings,
    ):
        self.github_client = github_client
        self.owner_kind = owner_kind
        self.owner = owner
        self.number = number
        self.settings = settings
        self._layout: Optional[BoardLayout] = None

    @classmethod
    def from_url(
        cls, url: str, github_client: GitHubClient, settings: ProjectSettings
    ) -> "ProjectBoard":
        """Create a board from its URL.

        Raises:
            ConfigurationError: If the URL is not a project board URL.
        """
        owner_kind, owner, number = parse_project_url(url)
        return cls(github_client, owner_kind, owner, number, settings)

    @classmethod
    def from_settings(cls, github_client: GitHubClient, settings: ProjectSettings) -> "ProjectBoard":
        """Create the board named by project.url."""
        return cls.from_url(settings.url, github_client, settings)

    async def load(self) -> BoardLayout:
        """Resolve field and option IDs, once per run.

        Raises:
            ConfigurationError: If the board, a configured field or a
                                configured status option cannot be found.
        """
        if self._layout is not None:
            return self._layout

        data = await self.github_client.graphql(
            FIELDS_QUERY % self.owner_kind,
            {"login": self.owner, "number": self.number},
        )
        project = (data.get(self.owner_kind) or {}).get("projectV2")
        if not project:
            raise ConfigurationError(
                f"Project {self.number} not found for {self.owner}", setting="project.url"
            )

        fields = {
            node["name"]: node
            for node in project.get("fields", {}).get("nodes", [])
            if node and node.get("name")
        }
        names = self.settings.field

        status_field = self._require_field(fields, names.status, "project.field.status")
        options = {option["name"]: option["id"] for option in status_field.get("options") or []}

        layout = BoardLayout(project_id=project["id"], status_field_id=status_field["id"])
        for status in ProjectStatus:
            name = option_name(status, self.settings.status)
            if not name:
                continue
            if name not in options:
                raise ConfigurationError(
                    f"Status {name!r} not found on field {names.status!r} of project "
                    f"{self.number}; available: {sorted(options)}",
                    setting=f"project.status.{status.name.lower()}",
                )
            layout.status_options[status] = options[name]

        if names.start_date.strip():
            layout.start_date_field_id = self._require_field(
                fields, names.start_date, "project.field.start_date"
            )["id"]
        if names.end_date.strip():
            layout.end_date_field_id = self._require_field(
                fields, names.end_date, "project.field.end_date"
            )["id"]

        logger.info(
            "Loaded project board",
            owner=self.owner,
            number=self.number,
            title=project.get("title"),
            statuses=[s.value for s in layout.status_options],
        )
        self._layout = layout
        return layout

    def _require_field(self, fields: Dict[str, Any], name: str, setting: str) -> Dict[str, Any]:
        node = fields.get(name.strip())
        if node is None:
            raise ConfigurationError(
                f"Field {name!r} not found on project {self.number}; available: {sorted(fields)}",
                setting=setting,
            )
        return node

    async def find_or_create_item(self, issue: IssueSnapshot, project_id: str) -> Tuple[str, bool]:
        """Locate the issue's card on the board, adding the issue if needed.

        Returns:
            (item ID, whether the card was created by this call)
        """
        content_id = issue.node_id
        if not content_id:
            raise ValueError(f"Issue #{issue.number} has no node ID")

        data = await self.github_client.graphql(ISSUE_ITEMS_QUERY, {"id": content_id})
        items = ((data.get("node") or {}).get("projectItems") or {}).get("nodes") or []
        for item in items:
            if item and (item.get("project") or {}).get("id") == project_id:
                return item["id"], False

        data = await self.github_client.graphql(
            ADD_ITEM_MUTATION, {"project": project_id, "content": content_id}
        )
        item_id = data["addProjectV2ItemById"]["item"]["id"]
        logger.info("Added issue to project board", issue_number=issue.number, item_id=item_id)
        return item_id, True

    async def _set_field(self, project_id: str, item_id: str, field_id: str, value: Dict[str, Any]) -> None:
        await self.github_client.graphql(
            UPDATE_FIELD_MUTATION,
            {"project": project_id, "item": item_id, "field": field_id, "value": value},
        )

    async def sync(
        self,
        issue: IssueSnapshot,
        status: ProjectStatus,
        start_date: date,
        end_date: date,
    ) -> str:
        """Write an issue's status and activity dates to its card.

        The start date is only written when the card is created by this
        call; the end date is written every time.

        Returns:
            The card's item ID.
        """
        layout = await self.load()
        option_id = layout.status_options.get(status)
        if option_id is None:
            logger.debug("Status disabled on board, skipping", status=status.value)
            return ""

        item_id, created = await self.find_or_create_item(issue, layout.project_id)

        await self._set_field(
            layout.project_id, item_id, layout.status_field_id, {"singleSelectOptionId": option_id}
        )
        if created and layout.start_date_field_id:
            await self._set_field(
                layout.project_id, item_id, layout.start_date_field_id, {"date": start_date.isoformat()}
            )
        if layout.end_date_field_id:
            await self._set_field(
                layout.project_id, item_id, layout.end_date_field_id, {"date": end_date.isoformat()}
            )

        logger.info(
            "Project card updated",
            issue_number=issue.number,
            item_id=item_id,
            status=status.value,
            created=created,
        )
        return item_id
