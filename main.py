from flask import Flask, request, jsonify
from flask_cors import CORS
from decimal import InvalidOperation
from royalty_engine import EngineSettings, RoyaltyEngine, StreamData
from royalty_engine.errors import AccountNotFoundError, StatementNotFoundError
from royalty_engine.models import RecoupmentMode, parse_date, to_decimal
from royalty_engine.output import OutputBuilder, to_money
from royalty_engine.repositories import InMemoryStatementRepository
import functools
import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

output = OutputBuilder()


def handle_errors(view):
    """Map engine errors to JSON responses."""
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)

        except (StatementNotFoundError, AccountNotFoundError) as e:
            return jsonify({"error": str(e), "status": "not_found"}), 404

        except (ValueError, KeyError, TypeError, InvalidOperation) as e:
            # Validation errors from engine (missing fields, invalid types, etc.)
            logger.error(f"Validation error: {str(e)}")
            return jsonify({
                "error": f"Validation error: {str(e)}",
                "status": "validation_failed"
            }), 400

        except Exception as e:
            # Unexpected errors - log details but return generic message
            logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
            return jsonify({
                "error": "An unexpected error occurred during processing",
                "status": "failed"
            }), 500
    return wrapper


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    if not data:
        raise ValueError("No input data provided")
    return data


def create_app(settings: EngineSettings | None = None, statements=None) -> Flask:
    settings = settings or EngineSettings.from_env()
    statements = statements if statements is not None else InMemoryStatementRepository()

    app = Flask(__name__)

    # Enable CORS for all routes
    CORS(app)

    # Engine without reference data, used for statement lookups and transitions
    store = RoyaltyEngine(statements=statements, settings=settings)

    def engine_for(data: dict) -> RoyaltyEngine:
        return RoyaltyEngine.from_dict(data, settings=settings, statements=statements)

    @app.route("/api", methods=["GET"])
    def api_info():
        """API information endpoint"""
        return jsonify({
            "status": "ok",
            "message": "Royalty Calculation & Statement Engine API",
            "environment": settings.environment,
            "endpoints": {
                "calculate_stream": "/calculate_stream [POST]",
                "calculate_period": "/calculate_period [POST]",
                "apply_recoupment": "/apply_recoupment [POST]",
                "calculate_splits": "/calculate_splits [POST]",
                "calculate_publishing": "/calculate_publishing [POST]",
                "fee_tiers": "/fee_tiers [GET]",
                "statement": "/statements/<id> [GET]",
                "user_statements": "/users/<user_id>/statements [GET]",
                "finalize": "/statements/<id>/finalize [POST]",
                "paid": "/statements/<id>/paid [POST]",
                "dispute": "/statements/<id>/dispute [POST]",
                "health": "/health [GET]"
            }
        }), 200

    @app.route("/health", methods=["GET"])
    def health():
        """Health check for monitoring"""
        return jsonify({"status": "healthy", "environment": settings.environment}), 200

    @app.route("/fee_tiers", methods=["GET"])
    @handle_errors
    def fee_tiers():
        gross = request.args.get("gross_revenue")
        tiers = []
        for tier in store.fee_calculator.tiers():
            entry = {
                "tier": tier.key,
                "name": tier.name,
                "platform_fee": float(tier.platform_fee),
                "distribution_fee": float(tier.distribution_fee),
            }
            if gross is not None:
                fees = store.calculate_net_by_tier(to_decimal(gross), tier.key)
                entry["net_revenue"] = to_money(fees.net_revenue)
                entry["savings_vs_free"] = to_money(fees.savings)
            tiers.append(entry)
        return jsonify({"tiers": tiers}), 200

    @app.route("/calculate_stream", methods=["POST"])
    @handle_errors
    def calculate_stream():
        data = _json_body()
        engine = engine_for(data)
        stream = StreamData.from_dict(data["stream"])
        calculation = engine.calculate_stream(stream, data.get("tier"))
        return jsonify(output.build_calculation(calculation)), 200

    @app.route("/calculate_period", methods=["POST"])
    @handle_errors
    def calculate_period():
        data = _json_body()
        user_id = data["user_id"]
        logger.info(f"Calculating period statement for user: {user_id}")

        engine = engine_for(data)
        statement = engine.calculate_period(
            user_id,
            parse_date(data["start_date"]),
            parse_date(data["end_date"]),
            release_id=data.get("release_id"),
            tier=data.get("tier")
        )
        if data.get("save"):
            statement = engine.save_statement(statement)

        return jsonify(output.build_statement(statement)), 200

    @app.route("/apply_recoupment", methods=["POST"])
    @handle_errors
    def apply_recoupment():
        data = _json_body()
        user_id = data["user_id"]
        engine = engine_for(data)
        amount = to_decimal(data["amount"])
        engine.validator.validate_amount("amount", amount)

        result = engine.waterfall.apply(
            user_id, amount, data.get("statement_id"), data.get("mode", RecoupmentMode.WATERFALL)
        )

        response = output.build_waterfall(result)
        response["updated_accounts"] = [
            output.build_account(a) for a in engine.accounts.find(user_id, active_only=False)
        ]
        return jsonify(response), 200

    @app.route("/calculate_splits", methods=["POST"])
    @handle_errors
    def calculate_splits():
        data = _json_body()
        engine = engine_for(data)
        commit = bool(data.get("commit_recoupment", False))
        splits = engine.calculate_split_amounts(
            data["release_id"],
            to_decimal(data["gross_revenue"]),
            to_decimal(data["net_revenue"]),
            commit_recoupment=commit
        )
        response = {"splits": output.build_splits(splits)}
        if commit:
            response["updated_accounts"] = [output.build_account(a) for a in engine.accounts.all()]
        return jsonify(response), 200

    @app.route("/calculate_publishing", methods=["POST"])
    @handle_errors
    def calculate_publishing():
        data = _json_body()
        royalty_type = data["royalty_type"]

        if royalty_type == "mechanical":
            royalty = store.calculate_mechanical_royalty(
                data["isrc_code"],
                data["territory"],
                int(data["streams"]),
                to_decimal(data.get("publisher_percentage", "0.5"))
            )
        elif royalty_type == "performance":
            royalty = store.calculate_performance_royalty(
                data["isrc_code"],
                data["pro"],
                data["performance_type"],
                to_decimal(data["total_revenue"])
            )
        elif royalty_type == "sync":
            royalty = store.calculate_sync_royalty(
                data["license_id"],
                data["licensee_type"],
                to_decimal(data["master_fee"]),
                to_decimal(data["publishing_fee"]),
                data["territory"],
                int(data.get("term_months", 12)),
                bool(data.get("exclusivity", False))
            )
        else:
            raise ValueError(f"Invalid royalty_type: {royalty_type}. Must be 'mechanical', 'performance' or 'sync'")

        return jsonify(output.build_publishing(royalty)), 200

    @app.route("/statements/<statement_id>", methods=["GET"])
    @handle_errors
    def get_statement(statement_id):
        statement = store.get_statement(statement_id)
        if statement is None:
            raise StatementNotFoundError(statement_id)
        return jsonify(output.build_statement(statement)), 200

    @app.route("/users/<user_id>/statements", methods=["GET"])
    @handle_errors
    def get_user_statements(user_id):
        limit = request.args.get("limit", type=int)
        offset = request.args.get("offset", default=0, type=int)
        statements = store.get_user_statements(
            user_id, status=request.args.get("status"), limit=limit, offset=offset
        )
        return jsonify({
            "statements": [output.build_statement(s, include_line_items=False) for s in statements]
        }), 200

    @app.route("/statements/<statement_id>/finalize", methods=["POST"])
    @handle_errors
    def finalize_statement(statement_id):
        return jsonify(output.build_statement(store.finalize_statement(statement_id))), 200

    @app.route("/statements/<statement_id>/paid", methods=["POST"])
    @handle_errors
    def mark_statement_paid(statement_id):
        return jsonify(output.build_statement(store.mark_statement_paid(statement_id))), 200

    @app.route("/statements/<statement_id>/dispute", methods=["POST"])
    @handle_errors
    def dispute_statement(statement_id):
        data = request.get_json(force=True, silent=True) or {}
        reason = data.get("reason")
        if not reason:
            raise ValueError("reason is required to dispute a statement")
        return jsonify(output.build_statement(store.dispute_statement(statement_id, reason))), 200

    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
