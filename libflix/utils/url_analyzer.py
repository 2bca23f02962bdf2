"""Offline analysis of the cover URLs carried by catalog items.

No network access: this only looks at the URL strings and reports patterns
that tend to fail (plain HTTP, hosts the reliability policy distrusts, missing
image extensions) along with recommendations. Host judgements come from
``ReliabilityScorer`` so the report agrees with candidate ranking.
"""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

from libflix.domain.models import CatalogItem
from libflix.services.host_policy import ReliabilityScorer

_IMAGE_EXT_RE = re.compile(r'\.(jpg|jpeg|png|gif|webp)(\?|$)', re.IGNORECASE)

SUSPICIOUS_DOMAINS = ('localhost', '127.0.0.1', 'example.com', 'test.com')
LOW_SCORE_THRESHOLD = 40
LONG_URL_THRESHOLD = 1500
CONCENTRATION_THRESHOLD = 0.7


@dataclass
class UrlIssue:
    item_id: str
    title: str
    url: str
    domain: str
    is_primary: bool
    issues: List[str]


@dataclass
class Recommendation:
    priority: str
    issue: str
    suggestion: str
    affected: int


@dataclass
class UrlAnalysis:
    total_items: int = 0
    total_urls: int = 0
    urls_by_domain: Counter = field(default_factory=Counter)
    urls_by_scheme: Counter = field(default_factory=Counter)
    issues: List[UrlIssue] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'total_items': self.total_items,
            'total_urls': self.total_urls,
            'urls_by_domain': dict(self.urls_by_domain),
            'urls_by_scheme': dict(self.urls_by_scheme),
            'issues': [vars(i) for i in self.issues],
            'recommendations': [vars(r) for r in self.recommendations],
        }


def url_issues(url: str, scorer: Optional[ReliabilityScorer] = None) -> List[str]:
    scorer = scorer or ReliabilityScorer()
    parsed = urlparse(url)
    domain = (parsed.hostname or '').lower()
    if parsed.scheme not in ('http', 'https') or not domain:
        return ['Malformed URL']

    issues: List[str] = []
    if parsed.scheme == 'http':
        issues.append('Uses HTTP instead of HTTPS')
    if len(url) > LONG_URL_THRESHOLD:
        issues.append(f'Very long URL (>{LONG_URL_THRESHOLD} chars)')
    if 'undefined' in url or 'null' in url:
        issues.append('Contains undefined/null')
    if not _IMAGE_EXT_RE.search(url):
        issues.append('Missing or unclear image file extension')
    if any(s in domain for s in SUSPICIOUS_DOMAINS):
        issues.append('Suspicious or test domain')
    policy, _ = scorer.lookup(domain)
    if policy.unreliable:
        issues.append('Host marked unreliable')
    score = scorer.score(url)
    if score < LOW_SCORE_THRESHOLD:
        issues.append(f'Low reliability score ({score})')
    return issues


def _count_issue(analysis: UrlAnalysis, needle: str) -> int:
    return sum(1 for i in analysis.issues if any(needle in text for text in i.issues))


def _recommendations(analysis: UrlAnalysis) -> List[Recommendation]:
    recs: List[Recommendation] = []

    malformed = _count_issue(analysis, 'Malformed')
    if malformed:
        recs.append(Recommendation('critical', 'Malformed URLs',
                                   'Fix malformed URLs; they can never load', malformed))

    http_count = analysis.urls_by_scheme.get('http', 0)
    if http_count:
        recs.append(Recommendation('high', 'HTTP URLs detected',
                                   'Convert HTTP URLs to HTTPS', http_count))

    unreliable = _count_issue(analysis, 'unreliable')
    if unreliable:
        recs.append(Recommendation('high', 'URLs on unreliable hosts',
                                   'Replace them or add an ISBN so generated candidates take over', unreliable))

    if analysis.urls_by_domain and analysis.total_urls:
        domain, count = analysis.urls_by_domain.most_common(1)[0]
        if count > analysis.total_urls * CONCENTRATION_THRESHOLD:
            recs.append(Recommendation(
                'medium', 'Heavy reliance on single domain',
                f'Over {int(CONCENTRATION_THRESHOLD * 100)}% of images come from {domain}; diversify sources',
                count,
            ))

    missing_ext = _count_issue(analysis, 'extension')
    if missing_ext:
        recs.append(Recommendation('medium', 'URLs missing clear image extensions',
                                   'Prefer URLs ending in .jpg, .png or similar', missing_ext))
    return recs


def analyze_catalog_urls(items: Iterable[CatalogItem],
                         scorer: Optional[ReliabilityScorer] = None) -> UrlAnalysis:
    scorer = scorer or ReliabilityScorer()
    analysis = UrlAnalysis()
    for item in items:
        analysis.total_items += 1
        urls = item.supplied_urls()
        for index, url in enumerate(urls):
            analysis.total_urls += 1
            parsed = urlparse(url)
            domain = (parsed.hostname or '').lower() or 'INVALID'
            if domain != 'INVALID':
                analysis.urls_by_domain[domain] += 1
                analysis.urls_by_scheme[parsed.scheme] += 1
            issues = url_issues(url, scorer)
            if issues:
                analysis.issues.append(UrlIssue(
                    item_id=item.id, title=item.title, url=url, domain=domain,
                    is_primary=(index == 0 and bool(item.primary_image_url)), issues=issues,
                ))
    analysis.recommendations = _recommendations(analysis)
    return analysis


def format_report(analysis: UrlAnalysis, top: int = 5) -> str:
    lines = [
        'Cover URL Analysis',
        '==================',
        f'Total items: {analysis.total_items}',
        f'Total URLs: {analysis.total_urls}',
        f'Unique domains: {len(analysis.urls_by_domain)}',
        f'URLs with issues: {len(analysis.issues)}',
    ]
    if analysis.urls_by_domain:
        lines.append('')
        lines.append(f'Top {top} domains:')
        for domain, count in analysis.urls_by_domain.most_common(top):
            lines.append(f'  {domain}: {count} ({count / analysis.total_urls * 100:.1f}%)')

    if analysis.issues:
        by_type: Counter = Counter(text for i in analysis.issues for text in i.issues)
        lines.append('')
        lines.append('Issues by type:')
        for text, count in by_type.most_common():
            lines.append(f'  {text}: {count}')

        by_item: Counter = Counter(i.title or i.item_id for i in analysis.issues)
        lines.append('')
        lines.append('Items with most URL issues:')
        for title, count in by_item.most_common(top):
            lines.append(f'  "{title}": {count}')

    if analysis.recommendations:
        lines.append('')
        lines.append('Recommendations:')
        for rec in analysis.recommendations:
            lines.append(f'  [{rec.priority}] {rec.issue}: {rec.suggestion} ({rec.affected} affected)')
    return '\n'.join(lines)
