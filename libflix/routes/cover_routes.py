import concurrent.futures
import logging
from io import BytesIO

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from libflix.domain.models import CatalogItem, Priority
from libflix.utils.placeholder_covers import render_placeholder

logger = logging.getLogger(__name__)

cover_bp = Blueprint('cover_api', __name__, url_prefix='/api/covers')


def _runtime():
    return current_app.extensions['libflix']


def _run(coro):
    rt = _runtime()
    return rt.loop.run(coro, timeout=rt.settings.resolve_timeout)


def _json_body():
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        return None
    return data


def _timeout_response():
    return jsonify({'error': 'resolution_timed_out'}), 504


@cover_bp.route('/resolve', methods=['POST'])
def resolve_cover():
    data = _json_body()
    if data is None:
        return jsonify({'error': 'invalid_json'}), 400
    try:
        item = CatalogItem.from_dict(data.get('item'))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    priority = Priority.coerce(data.get('priority'))
    try:
        result = _run(_runtime().resolver.resolve_image(item, priority))
    except concurrent.futures.TimeoutError:
        return _timeout_response()
    return jsonify(result.to_dict())


@cover_bp.route('/items/<item_id>', methods=['GET'])
def resolve_catalog_item(item_id):
    rt = _runtime()
    item = rt.catalog.get(item_id)
    if item is None:
        return jsonify({'error': 'not_found'}), 404
    priority = Priority.coerce(request.args.get('priority'))
    try:
        result = _run(rt.resolver.resolve_image(item, priority))
    except concurrent.futures.TimeoutError:
        return _timeout_response()
    return jsonify(result.to_dict())


@cover_bp.route('/preload', methods=['POST'])
def preload_covers():
    data = _json_body()
    if data is None:
        return jsonify({'error': 'invalid_json'}), 400
    ids = data.get('ids')
    if not isinstance(ids, list):
        return jsonify({'error': 'ids must be a list'}), 400

    rt = _runtime()
    items, missing = [], []
    for item_id in ids:
        item = rt.catalog.get(item_id)
        if item is None:
            missing.append(item_id)
        else:
            items.append(item)
    try:
        results = _run(rt.resolver.preload(items, data.get('priority')))
    except concurrent.futures.TimeoutError:
        return _timeout_response()
    return jsonify({'results': [r.to_dict() for r in results], 'missing': missing})


@cover_bp.route('/placeholder', methods=['GET'])
def placeholder_cover():
    png = render_placeholder(request.args.get('title', ''), request.args.get('author', ''))
    return send_file(BytesIO(png), mimetype='image/png')


@cover_bp.route('/stats', methods=['GET'])
def cover_stats():
    rt = _runtime()
    resolver_stats = _run(_resolver_stats(rt.resolver))
    return jsonify({
        'cache': resolver_stats,
        'diagnostics': rt.diagnostics.summary(),
        'failure_patterns': rt.diagnostics.failure_patterns(),
    })


async def _resolver_stats(resolver):
    # In-flight map belongs to the loop thread.
    return resolver.stats()


@cover_bp.route('/cache/clear', methods=['POST'])
def clear_cover_cache():
    data = request.get_json(force=True, silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return jsonify({'error': 'invalid_json'}), 400
    failed_only = bool(data.get('failed_only', False))
    clear_diagnostics = bool(data.get('diagnostics', False))
    rt = _runtime()
    rt.resolver.reset(failed_only=failed_only)
    if clear_diagnostics:
        rt.diagnostics.clear()
    return jsonify({'cleared': 'failed' if failed_only else 'all', 'diagnostics': clear_diagnostics})


@cover_bp.route('/failures', methods=['GET'])
def cover_failures():
    failures = _runtime().diagnostics.failing_items()
    return jsonify({'failures': [f.to_dict() for f in failures]})


@cover_bp.route('/diagnostics.csv', methods=['GET'])
def cover_diagnostics_csv():
    csv_text = _runtime().diagnostics.export_csv()
    return Response(
        csv_text,
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=cover-diagnostics.csv'},
    )
