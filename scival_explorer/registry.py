# scival_explorer/registry.py
"""
View table: for every page, the fixed list of upstream tasks (label, endpoint,
query builder, extractor) and the template that renders the joined context.
Adding or dropping an entity type is a change to this table only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple
from urllib.parse import quote

from scival_explorer.aggregate import AggregationTask, Extractor
from scival_explorer.clients.elsevier import build_request
from scival_explorer.settings import Settings


class EntityType(str, Enum):
    AUTHOR = "author"
    COUNTRY = "country"
    COUNTRY_GROUP = "countryGroup"
    INSTITUTION = "institution"
    INSTITUTION_GROUP = "institutionGroup"
    TOPIC = "topic"


# ============================================================================
# Upstream endpoints
# ============================================================================

SCOPUS_AUTHOR_SEARCH = "/content/search/author"
SCOPUS_SEARCH = "/content/search/scopus"
SCOPUS_AUTHOR = "/content/author/author_id/{id}"
SCOPUS_ABSTRACT = "/content/abstract/eid/{id}"
SCIVAL_SEARCH = "/analytics/scival/{entity}/search"
SCIVAL_METRICS = "/analytics/scival/{entity}/metrics"
SCIVAL_GROUP = "/analytics/scival/{entity}/{id}"
SCIVAL_INSTITUTION_TOPICS = "/analytics/scival/topic/institutionId/{id}"

AUTHOR_METRICS = "ScholarlyOutput,CitationCount,hIndices,FieldWeightedCitationImpact,CitationsPerPublication,Collaboration"
ENTITY_METRICS = "ScholarlyOutput,CitationCount,FieldWeightedCitationImpact,CitationsPerPublication,Collaboration"
TOPIC_METRICS = "ScholarlyOutput,CitationCount,FieldWeightedCitationImpact,InstitutionCount"

# SciVal metrics take the entity ids under a per-type parameter name
METRIC_ID_PARAM: Dict[EntityType, str] = {
    EntityType.AUTHOR: "authors",
    EntityType.COUNTRY: "countryIds",
    EntityType.COUNTRY_GROUP: "countryGroupIds",
    EntityType.INSTITUTION: "institutionIds",
    EntityType.INSTITUTION_GROUP: "institutionGroupIds",
    EntityType.TOPIC: "topicIds",
}


def escape_segment(value: str) -> str:
    """Escape an identifier for use as one URL path segment."""
    return quote(value, safe="")


# ============================================================================
# Extractors
# ============================================================================

def pluck(*path: Any) -> Extractor:
    """Walk a fixed key/index path; a missing step raises KeyError/IndexError/TypeError."""
    def _extract(body: Any) -> Any:
        node = body
        for step in path:
            node = node[step]
        return node
    return _extract


def scopus_entries(body: Any) -> List[Dict[str, Any]]:
    # An empty Scopus result set still carries one {"error": "Result set was empty"} entry
    entries = body["search-results"]["entry"]
    return [e for e in entries if "error" not in e]


def abstract_record(body: Any) -> Dict[str, Any]:
    record = body["abstracts-retrieval-response"]
    if not isinstance(record["coredata"], dict):
        raise TypeError("abstract coredata is not an object")
    return record


# ============================================================================
# Query builders
# ============================================================================

def author_query(full_name: str) -> str:
    parts = full_name.split()
    if not parts:
        raise ValueError("author name must not be blank")
    query = f"authlast({parts[-1]})"
    first = " ".join(parts[:-1])
    if first:
        query += f" and authfirst({first})"
    return query


def entity_query(name: str) -> str:
    return f"name({name.strip()})"


def _metric_params(settings: Settings, entity: EntityType, metric_types: str) -> Callable[[str], Dict[str, Any]]:
    def _params(ident: str) -> Dict[str, Any]:
        return {
            "metricTypes": metric_types,
            "byYear": "false",
            "yearRange": settings.year_range,
            METRIC_ID_PARAM[entity]: ident,
        }
    return _params


# ============================================================================
# Table
# ============================================================================

@dataclass(frozen=True)
class TaskSpec:
    label: str
    path: Callable[[str], str]
    params: Callable[[str], Dict[str, Any]]
    extractor: Extractor


@dataclass(frozen=True)
class ViewSpec:
    key: str
    template: str
    tasks: Tuple[TaskSpec, ...]
    extras: Dict[str, Any] = field(default_factory=dict)

    def plan(self, settings: Settings, ident: str) -> List[AggregationTask]:
        return [
            AggregationTask(
                label=t.label,
                request=build_request(settings, t.path(ident), t.params(ident)),
                extractor=t.extractor,
            )
            for t in self.tasks
        ]


@dataclass(frozen=True)
class ViewTable:
    search: Dict[EntityType, ViewSpec]
    detail: Dict[EntityType, ViewSpec]
    abstract: ViewSpec


def _metrics_task(settings: Settings, entity: EntityType, metric_types: str = ENTITY_METRICS) -> TaskSpec:
    return TaskSpec(
        label="metrics",
        path=lambda _ident: SCIVAL_METRICS.format(entity=entity.value),
        params=_metric_params(settings, entity, metric_types),
        extractor=pluck("results"),
    )


def _group_task(entity: EntityType) -> TaskSpec:
    return TaskSpec(
        label=entity.value,
        path=lambda ident: SCIVAL_GROUP.format(entity=entity.value, id=escape_segment(ident)),
        params=lambda _ident: {},
        extractor=pluck(entity.value),
    )


def _search_views(settings: Settings) -> Dict[EntityType, ViewSpec]:
    views: Dict[EntityType, ViewSpec] = {
        EntityType.AUTHOR: ViewSpec(
            key="search:author",
            template="author_results.html",
            tasks=(
                TaskSpec(
                    label="results",
                    path=lambda _name: SCOPUS_AUTHOR_SEARCH,
                    params=lambda name: {"query": author_query(name), "count": settings.search_result_count},
                    extractor=pluck("search-results"),
                ),
            ),
            extras={"entity_type": EntityType.AUTHOR.value},
        )
    }
    for entity in EntityType:
        if entity is EntityType.AUTHOR:
            continue
        views[entity] = ViewSpec(
            key=f"search:{entity.value}",
            template="results.html",
            tasks=(
                TaskSpec(
                    label="results",
                    path=lambda _name, e=entity: SCIVAL_SEARCH.format(entity=e.value),
                    params=lambda name: {"query": entity_query(name)},
                    extractor=pluck("results"),
                ),
            ),
            extras={"entity_type": entity.value},
        )
    return views


def _detail_views(settings: Settings) -> Dict[EntityType, ViewSpec]:
    author_tasks = [
        _metrics_task(settings, EntityType.AUTHOR, AUTHOR_METRICS),
        TaskSpec(
            label="docs",
            path=lambda _ident: SCOPUS_SEARCH,
            params=lambda ident: {
                "query": f"au-id({ident})",
                "field": "eid,title,citedby-count,coverDate",
                "sort": "coverDate",
                "count": settings.recent_docs_count,
            },
            extractor=scopus_entries,
        ),
    ]
    if settings.author_profile_enabled:
        author_tasks.append(
            TaskSpec(
                label="author",
                path=lambda ident: SCOPUS_AUTHOR.format(id=escape_segment(ident)),
                params=lambda _ident: {"view": "ENHANCED"},
                extractor=pluck("author-retrieval-response", 0),
            )
        )

    return {
        EntityType.AUTHOR: ViewSpec("detail:author", "author.html", tuple(author_tasks)),
        EntityType.COUNTRY: ViewSpec(
            "detail:country", "country.html", (_metrics_task(settings, EntityType.COUNTRY),),
        ),
        EntityType.COUNTRY_GROUP: ViewSpec(
            "detail:countryGroup", "country_group.html",
            (_metrics_task(settings, EntityType.COUNTRY_GROUP), _group_task(EntityType.COUNTRY_GROUP)),
        ),
        EntityType.INSTITUTION: ViewSpec(
            "detail:institution", "institution.html",
            (
                _metrics_task(settings, EntityType.INSTITUTION),
                TaskSpec(
                    label="topics",
                    path=lambda ident: SCIVAL_INSTITUTION_TOPICS.format(id=escape_segment(ident)),
                    params=lambda _ident: {
                        "yearRange": settings.year_range,
                        "limit": settings.institution_topics_limit,
                    },
                    extractor=pluck("topics"),
                ),
            ),
        ),
        EntityType.INSTITUTION_GROUP: ViewSpec(
            "detail:institutionGroup", "institution_group.html",
            (_metrics_task(settings, EntityType.INSTITUTION_GROUP), _group_task(EntityType.INSTITUTION_GROUP)),
        ),
        EntityType.TOPIC: ViewSpec(
            "detail:topic", "topic.html", (_metrics_task(settings, EntityType.TOPIC, TOPIC_METRICS),),
        ),
    }


def build_views(settings: Settings) -> ViewTable:
    return ViewTable(
        search=_search_views(settings),
        detail=_detail_views(settings),
        abstract=ViewSpec(
            "abstract", "abstract.html",
            (
                TaskSpec(
                    label="abstract",
                    path=lambda eid: SCOPUS_ABSTRACT.format(id=escape_segment(eid)),
                    params=lambda _eid: {"view": "META_ABS"},
                    extractor=abstract_record,
                ),
            ),
        ),
    )
