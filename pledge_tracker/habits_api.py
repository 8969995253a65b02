import logging
from flask import request, jsonify

from . import app, db
from .auth import token_required
from .controller import HabitController
from .entities import recurrence_from_record
from .errors import PersistenceError, StaleWriteError, ValidationError
from .storage import HabitStorage, KeyValueStore

logger = logging.getLogger(__name__)


def load_controller(user):
    storage = HabitStorage(KeyValueStore(db.session, namespace=user.id))
    controller = HabitController(
        storage,
        owner={"id": str(user.id), "name": user.username, "email": user.email, "joined_at": user.created_at},
        seed_demo_data=app.config["SEED_DEMO_DATA"],
    )
    controller.load()
    return controller


def habit_json(controller, habit):
    data = habit.to_record()
    data["is_due_today"] = habit.is_active and controller.is_due(habit.id)
    data["days_until_cancellation"] = controller.days_until_cancellation(habit.id)
    return data


def recurrence_from_payload(data):
    try:
        return recurrence_from_record(data.get("frequency"), data.get("custom_frequency"))
    except (TypeError, ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid recurrence: {str(e)}")


def not_found(habit_id):
    logger.error(f"Habit {habit_id} not found")
    return jsonify({"message": "Habit not found"}), 404


def failed(action, e):
    if isinstance(e, ValidationError):
        logger.error(f"Rejected {action}: {str(e)}")
        return jsonify({"message": str(e)}), 400
    if isinstance(e, StaleWriteError):
        logger.warning(f"Conflicting write during {action}: {str(e)}")
        return jsonify({"message": "Habits changed in another request, please retry"}), 409
    logger.error(f"Database error during {action}: {str(e)}")
    return jsonify({"message": f"Failed to {action}"}), 500


@app.route("/api/habits", methods=["GET", "POST"])
@token_required
def habits(user):
    if request.method == "GET":
        try:
            controller = load_controller(user)
        except PersistenceError as e:
            return failed("fetch habits", e)
        logger.debug(f"Fetched {len(controller.habits)} habits for user {user.username}")
        return jsonify([habit_json(controller, h) for h in controller.habits]), 200
    data = request.get_json(silent=True) or {}
    logger.debug(f"Create habit payload: {data}")
    try:
        controller = load_controller(user)
        habit = controller.add_habit(
            title=data.get("title"),
            description=data.get("description", ""),
            recurrence=recurrence_from_payload(data),
            pledge_amount=data.get("pledge_amount", 0),
        )
    except (ValidationError, PersistenceError) as e:
        return failed("create habit", e)
    return jsonify({"message": "Habit created", "habit": habit_json(controller, habit)}), 201


@app.route("/api/habits/<habit_id>", methods=["GET", "PUT", "DELETE"])
@token_required
def habit(user, habit_id):
    try:
        controller = load_controller(user)
        if request.method == "DELETE":
            if not controller.delete_habit(habit_id):
                return not_found(habit_id)
            return jsonify({"message": "Habit deleted"}), 200
        if request.method == "PUT":
            data = request.get_json(silent=True) or {}
            logger.debug(f"Update habit {habit_id} payload: {data}")
            fields = {k: data[k] for k in ("title", "description", "pledge_amount") if k in data}
            if "frequency" in data:
                fields["recurrence"] = recurrence_from_payload(data)
            updated = controller.update_habit(habit_id, **fields)
        else:
            updated = controller.get_habit(habit_id)
    except (ValidationError, PersistenceError) as e:
        return failed(f"{request.method.lower()} habit", e)
    if updated is None:
        return not_found(habit_id)
    return jsonify(habit_json(controller, updated)), 200


@app.route("/api/habits/<habit_id>/complete", methods=["POST"])
@token_required
def complete_habit(user, habit_id):
    try:
        controller = load_controller(user)
        habit = controller.complete(habit_id)
    except PersistenceError as e:
        return failed("complete habit", e)
    if habit is None:
        return not_found(habit_id)
    logger.info(f"Completion recorded for habit {habit_id} by user {user.username}")
    return jsonify({"message": "Habit completed", "streak": habit.streak, "habit": habit_json(controller, habit)}), 200


@app.route("/api/habits/<habit_id>/miss", methods=["POST"])
@token_required
def miss_habit(user, habit_id):
    data = request.get_json(silent=True) or {}
    try:
        controller = load_controller(user)
        habit = controller.mark_missed(habit_id, data.get("reason"), data.get("custom_reason"))
    except (ValidationError, PersistenceError) as e:
        return failed("mark habit missed", e)
    if habit is None:
        return not_found(habit_id)
    return jsonify({"message": "Habit marked missed", "habit": habit_json(controller, habit)}), 200


@app.route("/api/habits/<habit_id>/reasons", methods=["POST"])
@token_required
def provide_reason(user, habit_id):
    data = request.get_json(silent=True) or {}
    if not data.get("date") or not data.get("reason"):
        return jsonify({"message": "Date and reason required"}), 400
    try:
        controller = load_controller(user)
        habit = controller.provide_reason(habit_id, data["date"], data["reason"], data.get("custom_reason"))
    except (ValidationError, PersistenceError) as e:
        return failed("record miss reason", e)
    if habit is None:
        return not_found(habit_id)
    return jsonify({"message": "Reason recorded", "habit": habit_json(controller, habit)}), 200


@app.route("/api/habits/<habit_id>/deactivate", methods=["POST"])
@token_required
def deactivate_habit(user, habit_id):
    try:
        controller = load_controller(user)
        habit = controller.deactivate(habit_id)
    except PersistenceError as e:
        return failed("deactivate habit", e)
    if habit is None:
        return not_found(habit_id)
    return jsonify(habit_json(controller, habit)), 200


@app.route("/api/habits/<habit_id>/cancellation", methods=["POST", "DELETE"])
@token_required
def cancellation(user, habit_id):
    try:
        controller = load_controller(user)
        if request.method == "POST":
            habit = controller.request_cancellation(habit_id)
        else:
            habit = controller.cancel_cancellation_request(habit_id)
    except PersistenceError as e:
        return failed("update cancellation", e)
    if habit is None:
        return not_found(habit_id)
    return jsonify(habit_json(controller, habit)), 200


@app.route("/api/habits/due", methods=["GET"])
@token_required
def due_habits(user):
    try:
        controller = load_controller(user)
        due = controller.get_habits_due_on(request.args.get("date"))
    except ValueError:
        return jsonify({"message": "Date must be YYYY-MM-DD"}), 400
    except PersistenceError as e:
        return failed("fetch due habits", e)
    return jsonify([habit_json(controller, h) for h in due]), 200


@app.route("/api/pending-reasons", methods=["GET"])
@token_required
def pending_reasons(user):
    try:
        controller = load_controller(user)
    except PersistenceError as e:
        return failed("fetch pending reasons", e)
    return jsonify([p.to_record() for p in controller.get_pending_reasons()]), 200


@app.route("/api/payments", methods=["GET"])
@token_required
def payments(user):
    try:
        controller = load_controller(user)
        records = [p.to_record() for p in controller.get_payments()]
    except PersistenceError as e:
        return failed("fetch payments", e)
    return jsonify({"payments": records, "total_pledged": str(controller.get_total_pledged())}), 200


@app.route("/api/profile", methods=["GET"])
@token_required
def profile(user):
    try:
        controller = load_controller(user)
    except PersistenceError as e:
        return failed("fetch profile", e)
    return jsonify(controller.profile.to_record()), 200


@app.route("/api/reset", methods=["POST"])
@token_required
def reset(user):
    try:
        controller = load_controller(user)
        controller.reset()
    except PersistenceError as e:
        return failed("reset data", e)
    logger.info(f"All data cleared for user {user.username}")
    return jsonify({"message": "All data cleared"}), 200
