from datetime import datetime, timezone

from flask import jsonify, request

from clubvote.services.voting import (
    InvalidBallot,
    InvalidScore,
    SqlBallotStore,
    StorageUnavailable,
    normalize_scope,
    tally,
    tally_score_totals,
    validate_identifier,
    validate_score,
)

RESULT_FORMATS = ("star", "simple")

STAR_DETAILS = {
    "explanation": (
        "STAR voting uses score totals to select the top 2 candidates, then an "
        "automatic runoff between them based on pairwise preferences."
    ),
    "scoring_range": "0-5 stars per candidate",
    "runoff_method": "Automatic runoff between top 2 candidates by total score",
}

SIMPLE_DETAILS = {
    "explanation": "Simple scoring results ranked by total score points.",
    "scoring_range": "0-5 stars per candidate",
    "ranking_method": "Highest total score wins",
}


def _timestamp():
    return datetime.now(timezone.utc).isoformat()


def _error(message, status):
    return jsonify({"success": False, "error": message}), status


def _read_vote_payload():
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else None
    if request.mimetype in ("application/x-www-form-urlencoded", "multipart/form-data"):
        return {
            "voter_id": request.form.get("voter_id", ""),
            "candidate_id": request.form.get("candidate_id", ""),
            "score": request.form.get("score", ""),
            "election_scope": request.form.get("election_scope"),
        }
    return None


def register_api_routes(app):
    @app.route("/api/vote", methods=["POST"])
    def submit_vote():
        data = _read_vote_payload()
        if data is None:
            return _error(
                "Unsupported or malformed body. Use a JSON object or form data.", 400
            )

        store = SqlBallotStore()
        is_batch = isinstance(data.get("votes"), list)

        try:
            voter_id = validate_identifier("voter_id", data.get("voter_id"))
            election_scope = normalize_scope(data.get("election_scope"))

            if is_batch:
                max_votes = app.config["STAR_MAX_BATCH_VOTES"]
                raw_votes = data["votes"]
                if not raw_votes:
                    return _error("At least one vote is required.", 400)
                if len(raw_votes) > max_votes:
                    return _error(
                        f"Cannot submit more than {max_votes} votes at once.", 400
                    )

                votes = []
                for index, item in enumerate(raw_votes):
                    if not isinstance(item, dict):
                        raise InvalidBallot(f"votes.{index}", "must be an object")
                    votes.append(
                        (
                            validate_identifier(
                                f"votes.{index}.candidate_id", item.get("candidate_id")
                            ),
                            validate_score(item.get("score")),
                        )
                    )
            else:
                candidate_id = validate_identifier(
                    "candidate_id", data.get("candidate_id")
                )
                score = validate_score(data.get("score"))
        except (InvalidBallot, InvalidScore) as exc:
            app.logger.warning("Vote validation failed: %s", exc)
            return _error(f"Validation failed: {exc}", 400)

        if not is_batch:
            try:
                ballot = store.upsert_ballot(voter_id, candidate_id, score, election_scope)
            except StorageUnavailable:
                return _error("Ballot storage is unavailable. Please try again later.", 503)
            return jsonify(
                {
                    "success": True,
                    "message": "Vote recorded successfully",
                    "vote": ballot.to_dict(),
                }
            )

        results = []
        for candidate_id, score in votes:
            try:
                ballot = store.upsert_ballot(voter_id, candidate_id, score, election_scope)
            except StorageUnavailable:
                results.append(
                    {
                        "success": False,
                        "error": f"Failed to save vote for candidate {candidate_id}",
                        "candidate_id": candidate_id,
                    }
                )
                continue
            results.append(
                {
                    "success": True,
                    "message": "Vote recorded successfully",
                    "vote": ballot.to_dict(),
                }
            )

        successful = sum(1 for row in results if row["success"])
        app.logger.info(
            "Batch vote submission for voter %s: %d of %d saved",
            voter_id,
            successful,
            len(results),
        )
        return jsonify(
            {
                "success": True,
                "message": "Batch vote processing complete",
                "results": results,
                "total_votes": len(results),
                "successful_votes": successful,
            }
        )

    @app.route("/api/vote", methods=["GET"])
    def voter_ballots():
        try:
            voter_id = validate_identifier("voter_id", request.args.get("voter_id"))
            election_scope = normalize_scope(request.args.get("election_scope"))
        except InvalidBallot as exc:
            return _error(str(exc), 400)

        try:
            ballots = SqlBallotStore().read_ballots_for_voter(voter_id, election_scope)
        except StorageUnavailable:
            return _error("Ballot storage is unavailable. Please try again later.", 503)

        return jsonify(
            {
                "success": True,
                "voter_id": voter_id,
                "election_scope": election_scope,
                "votes": [ballot.to_dict() for ballot in ballots],
                "total_votes": len(ballots),
            }
        )

    @app.route("/api/results", methods=["GET"])
    def results():
        result_format = request.args.get("format") or "star"
        if result_format not in RESULT_FORMATS:
            return _error('Invalid format. Use "star" or "simple".', 400)

        include_details = request.args.get("include_details") == "true"
        candidate_filter = request.args.get("candidate_id")
        try:
            election_scope = normalize_scope(request.args.get("election_scope"))
        except InvalidBallot as exc:
            return _error(str(exc), 400)

        store = SqlBallotStore()
        try:
            if result_format == "star":
                payload = tally(store, election_scope).to_dict()
                details = STAR_DETAILS
            else:
                aggregates = tally_score_totals(store, election_scope)
                payload = {
                    "election_scope": election_scope,
                    "candidates": [row.to_dict() for row in aggregates],
                    "winner": aggregates[0].candidate_id if aggregates else None,
                }
                details = SIMPLE_DETAILS
        except StorageUnavailable:
            return _error("Ballot storage is unavailable. Please try again later.", 503)

        if candidate_filter:
            candidates = [
                row
                for row in payload["candidates"]
                if row["candidate_id"] == candidate_filter
            ]
            # The winner is reported only if it survives the filter.
            if result_format == "star":
                winner = next((row for row in candidates if row["winner"]), None)
            else:
                winner = candidates[0] if candidates else None
            payload["candidates"] = candidates
            payload["winner"] = winner["candidate_id"] if winner else None
        payload["total_candidates"] = len(payload["candidates"])

        payload.update(
            {
                "success": True,
                "format": result_format,
                "timestamp": _timestamp(),
                "metadata": details if include_details else None,
            }
        )
        app.logger.info(
            "%s results served for scope %s (%d candidates)",
            result_format,
            election_scope,
            payload["total_candidates"],
        )
        return jsonify(payload)

    @app.route("/api/health", methods=["GET"])
    def health():
        if not SqlBallotStore().health_check():
            return (
                jsonify(
                    {
                        "status": "unhealthy",
                        "timestamp": _timestamp(),
                        "error": "Database connection failed",
                    }
                ),
                503,
            )
        return jsonify(
            {
                "status": "healthy",
                "timestamp": _timestamp(),
                "available_formats": list(RESULT_FORMATS),
            }
        )
