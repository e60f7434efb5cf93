from flask import Flask, request, jsonify, abort
from flask_cors import CORS
import hmac
import logging
import re

from backend.config import Settings, configure_logging
from backend.services.engine import AnalyticsEngine
from backend.utils.errors import InputError, RebuildError
from backend.utils.loader import load_corpus
from backend.utils.stopwords import StopwordStore

logger = logging.getLogger(__name__)


def _filters():
    # common filters shared by every trend endpoint and the reports screen:
    #   scope: all | local | national
    #   institute: institute name, or NRC/NCT with scope=national
    #   year: number (non-numeric is ignored)
    #   q: free-text search over title/tokens
    return {
        'scope': request.args.get('scope', 'all'),
        'institute': request.args.get('institute'),
        'year': request.args.get('year'),
        'q': request.args.get('q'),
    }


def _payload_words():
    # add/remove accept {"words": [...]}, {"words": "a, b"} or {"word": "a"}
    payload = request.get_json(silent=True) or {}
    raw = payload.get('words', payload.get('word', '')) if isinstance(payload, dict) else payload
    if isinstance(raw, list):
        words = [str(w) for w in raw if w is not None]
    else:
        words = re.split(r'[\s,]+', str(raw or ''))
    words = [w.strip() for w in words if w and w.strip()]
    if not words:
        raise InputError('words')
    return words


def create_app(engine=None, settings=None):
    settings = settings or Settings.from_env()
    if engine is None:
        reports, directory = load_corpus(settings.data_dir)
        engine = AnalyticsEngine(
            reports,
            directory,
            stopword_store=StopwordStore.in_data_dir(settings.data_dir),
            cache_maxsize=settings.cache_maxsize,
            cache_ttl=settings.cache_ttl,
        )

    app = Flask(__name__)
    CORS(app, origins=[settings.cors_origin])
    app.config['ENGINE'] = engine
    app.config['SETTINGS'] = settings

    @app.errorhandler(InputError)
    def handle_input_error(exc):
        return jsonify({'message': str(exc), 'param': exc.param}), 400

    @app.errorhandler(RebuildError)
    def handle_rebuild_error(exc):
        return jsonify({'message': 'Index rebuild failed', 'detail': str(exc)}), 500

    @app.route('/api/health')
    def health():
        snap = engine.snapshot()
        return jsonify({'ok': True, 'generation': snap.generation, 'reports': len(snap.index)})

    @app.route('/api/trends/summary')
    def trends_summary():
        top = request.args.get('top', 200)
        return jsonify(engine.snapshot().keyword_stats(_filters(), top=top))

    @app.route('/api/trends/top5')
    def trends_top5():
        return jsonify(engine.snapshot().top5_trends(_filters()))

    @app.route('/api/trends/keyword')
    def trends_keyword():
        keyword = request.args.get('keyword', '')
        resp = jsonify(engine.snapshot().keyword_series(keyword, _filters()))
        # series must never be served from a browser/proxy cache
        resp.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, proxy-revalidate'
        return resp

    @app.route('/api/trends/rising')
    def trends_rising():
        top = request.args.get('top', 20)
        return jsonify(engine.snapshot().rising_keywords(_filters(), top=top))

    @app.route('/api/trends/wordcloud')
    def trends_wordcloud():
        top = request.args.get('top', 50)
        return jsonify(engine.snapshot().word_cloud(_filters(), top=top))

    @app.route('/api/trends/burst')
    def trends_burst():
        top = request.args.get('top', 20)
        return jsonify(engine.snapshot().burst_keywords(_filters(), top=top))

    @app.route('/api/trends/network')
    def trends_network():
        top_keywords = request.args.get('topKeywords', 120)
        edge_top = request.args.get('edgeTop', 400)
        return jsonify(engine.snapshot().network(_filters(), top_keywords=top_keywords, edge_top=edge_top))

    @app.route('/api/trends/heatmap')
    def trends_heatmap():
        top_keywords = request.args.get('topKeywords', 30)
        return jsonify(engine.snapshot().heatmap(_filters(), top_keywords=top_keywords))

    @app.route('/api/trends/related')
    def trends_related():
        keyword = request.args.get('keyword', '')
        limit = request.args.get('limit', 50)
        return jsonify(engine.snapshot().related_reports(keyword, _filters(), limit=limit))

    @app.route('/api/reports/search')
    def reports_search():
        limit = request.args.get('limit', 50)
        offset = request.args.get('offset', 0)
        return jsonify(engine.snapshot().search_reports(_filters(), limit=limit, offset=offset))

    @app.route('/api/researchers/search')
    def researchers_search():
        return jsonify(engine.snapshot().search_researchers(
            query=request.args.get('q', ''),
            scope=request.args.get('scope', 'all'),
            institute=request.args.get('institute'),
            sort=request.args.get('sort', 'relevance'),
            limit=request.args.get('limit', 24),
            offset=request.args.get('offset', 0),
        ))

    @app.route('/api/admin/stopwords', methods=['GET'])
    def get_stopwords():
        return jsonify({'words': engine.stopwords(), 'generation': engine.generation})

    def require_admin():
        token = settings.admin_token
        supplied = request.headers.get('X-Admin-Token', '')
        # bytes, so a non-ASCII header is a mismatch rather than a TypeError
        if not token or not hmac.compare_digest(token.encode('utf-8'), supplied.encode('utf-8')):
            abort(403)

    @app.route('/api/admin/stopwords', methods=['PUT'])
    def put_stopwords():
        require_admin()
        payload = request.get_json(silent=True)
        if isinstance(payload, list):
            words = payload
        elif isinstance(payload, dict) and isinstance(payload.get('words'), list):
            words = payload['words']
        else:
            raise InputError('words', "expected {\"words\": [...]} or a list of words")

        result = engine.invalidate(words)
        logger.info('Stopwords replaced via admin endpoint, generation %d', result['generation'])
        return jsonify(result)

    @app.route('/api/admin/stopwords/add', methods=['POST'])
    def add_stopwords():
        require_admin()
        result = engine.add_stopwords(_payload_words())
        logger.info('Stopwords added via admin endpoint, generation %d', result['generation'])
        return jsonify(dict(result, words=engine.stopwords()))

    @app.route('/api/admin/stopwords/remove', methods=['POST'])
    def remove_stopwords():
        require_admin()
        result = engine.remove_stopwords(_payload_words())
        logger.info('Stopwords removed via admin endpoint, generation %d', result['generation'])
        return jsonify(dict(result, words=engine.stopwords()))

    @app.route('/api/stopwords/version')
    def stopwords_version():
        # clients poll this to refresh trend screens after a rebuild
        return jsonify({'version': engine.generation})

    return app


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app = create_app(settings=settings)
    app.run(host="0.0.0.0", port=settings.port)
