from __future__ import annotations

import logging
import os
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from flask import (
    Flask,
    Response,
    abort,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from itsdangerous import BadSignature, URLSafeSerializer
from markupsafe import Markup, escape

import photo
from editors import EDITORS, Editor, ValidationError
from models import FaqItem, PaymentConfig, Plan, Product, SellerNotes, parse_document, to_number
from store import AccessDenied, DocumentStore, InvalidName, StoreError, is_allowed

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEV_ONLY_MESSAGE = "Access denied. Admin API is for development only."


def _load_dotenv(path: Optional[str] = None) -> Dict[str, str]:
    """Apply KEY=VALUE pairs from a .env file beside this module.

    Real environment variables win. Returns the pairs that were applied.
    """
    env_file = Path(path) if path else Path(__file__).resolve().parent / ".env"
    if not env_file.is_file():
        return {}
    try:
        text = env_file.read_text(encoding="utf-8")
    except OSError:
        logger.warning("Could not read %s", env_file)
        return {}

    applied: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        if key in os.environ:
            continue
        os.environ[key] = value
        applied[key] = value
    return applied


# -------------------------
# Helpers
# -------------------------
def format_number(value: Any) -> str:
    """Thousands separators, no trailing .0: 15000 -> 15,000; 9.5 -> 9.5."""
    num = to_number(value)
    if num is None:
        return "0"
    if isinstance(num, float) and not num.is_integer():
        return f"{num:,.2f}".rstrip("0").rstrip(".")
    return f"{int(num):,}"


def format_mmk(value: Any) -> str:
    return f"{format_number(value)} MMK"


def split_feature(feature: str) -> Tuple[str, str]:
    """Return (marker, text): marker is "ok", "no" or "plain"."""
    feature = feature or ""
    if "✅" in feature:
        marker = "ok"
    elif "❌" in feature:
        marker = "no"
    else:
        marker = "plain"
    return marker, feature.replace("✅", "").replace("❌", "").strip()


def format_feature_html(feature: str) -> Markup:
    marker, text = split_feature(feature)
    icon = {"ok": "✔", "no": "✖", "plain": "•"}[marker]
    return Markup(f'<span class="feature-icon feature-{marker}">{icon}</span> {escape(text)}')


def build_receipt(product: Product, plan: Plan, price: Any, config: PaymentConfig, now: datetime) -> str:
    rule = "-" * 36
    lines = [
        rule,
        "RepliPay - Order Confirmation",
        rule,
        f"Product: {product.name}",
        f"Plan: {plan.name}",
        f"Price Paid: {format_mmk(price)}",
        f"Date: {now.strftime('%m/%d/%Y, %I:%M:%S %p')}",
        rule,
        config.confirmationNote or "Thank you for your purchase!",
        f"Contact: {config.telegramContact or 'Support'}",
        rule,
    ]
    return "\n".join(lines)


def is_ajax_request() -> bool:
    return (request.form.get("ajax") == "1") or (
        (request.headers.get("X-Requested-With") or "").lower() == "xmlhttprequest"
    )


def _int_arg(form: Mapping[str, Any], key: str) -> Optional[int]:
    raw = (form.get(key) or "").strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Invalid {key}.")


# -------------------------
# App factory
# -------------------------
def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    _load_dotenv()
    app = Flask(__name__)

    # Hard disable static caching; data files are edited live.
    app.config["SEND_FILE_MAX_AGE_DEFAULT"] = 0
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret-change-me")
    app.config["APP_ENV"] = os.getenv("APP_ENV", "production")
    app.config["DATA_DIR"] = os.getenv("DATA_DIR", os.path.join(app.root_path, "data"))
    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=str(app.config["LOG_LEVEL"]).upper(), format=LOG_FORMAT)
    app.json.sort_keys = False

    STATIC_VERSION = str(int(time.time()))

    # Template filters
    app.add_template_filter(format_mmk, name="mmk")
    app.add_template_filter(format_number, name="num")
    app.add_template_filter(format_feature_html, name="feature_html")

    def is_development() -> bool:
        return str(app.config["APP_ENV"]).lower() == "development"

    def get_store() -> DocumentStore:
        return DocumentStore(app.config["DATA_DIR"], development=is_development())

    def load_doc(name: str):
        """Storefront read: typed document, default when the file is absent."""
        return parse_document(name, get_store().load(name))

    def find_selection(slug: Optional[str], plan_id: Optional[str]) -> Tuple[Optional[Product], Optional[Plan]]:
        if not slug or not plan_id:
            return None, None
        products: List[Product] = load_doc("products.json")
        product = next((p for p in products if p.slug == slug), None)
        if product is None:
            return None, None
        return product, product.find_plan(plan_id)

    # -------------------------
    # Working copies (admin)
    # -------------------------
    def _serializer() -> URLSafeSerializer:
        return URLSafeSerializer(app.config["SECRET_KEY"], salt="working-copy-v1")

    def dump_working(editor: Editor) -> str:
        return _serializer().dumps(editor.dump())

    def load_working(section: str, token: str) -> Editor:
        return EDITORS[section].from_raw(_serializer().loads(token))

    # -------------------------
    # Image helpers
    # -------------------------
    def logo_url(p: Product) -> str:
        """Return a usable logo URL (never empty)."""
        if (p.logoUrl or "").strip():
            return p.logoUrl
        rel = f"logos/{p.slug}.png"
        if p.slug and os.path.exists(os.path.join(app.static_folder, rel)):
            return url_for("static", filename=rel)
        return url_for("placeholder", width=80, height=80, text=p.name or "Logo")

    app.add_template_global(logo_url, name="logo_url")

    # -------------------------
    # Cache headers
    # -------------------------
    @app.after_request
    def add_no_cache_headers(resp):
        resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        resp.headers["Expires"] = "0"
        return resp

    # -------------------------
    # Globals for templates
    # -------------------------
    @app.context_processor
    def inject_globals():
        try:
            footer_config = load_doc("payment_config.json")
        except StoreError:
            logger.exception("Footer could not load payment_config.json")
            footer_config = PaymentConfig()
        return dict(
            footer_config=footer_config,
            dev_mode=is_development(),
            current_year=datetime.now().year,
            static_version=STATIC_VERSION,
        )

    @app.errorhandler(StoreError)
    def store_error(e: StoreError):
        status = 500
        if isinstance(e, AccessDenied):
            status = 403
        elif isinstance(e, InvalidName):
            status = 400
        logger.error("Request to %s failed: %s", request.path, e)
        return render_template("index.html", view="error", title="Something went wrong", message=str(e)), status

    # -------------------------
    # Storefront
    # -------------------------
    @app.get("/")
    def home():
        products: List[Product] = load_doc("products.json")
        faqs: List[FaqItem] = load_doc("faqs.json")
        notes: SellerNotes = load_doc("seller_notes.json")
        return render_template(
            "index.html",
            view="home",
            title="RepliPay – digital products & services",
            products=products,
            faqs=faqs,
            notes=notes,
        )

    @app.get("/products/<slug>")
    def product(slug: str):
        products: List[Product] = load_doc("products.json")
        p = next((x for x in products if x.slug == slug), None)
        if not p:
            return render_template("index.html", view="product_missing", title="Product not found"), 404
        return render_template("index.html", view="product", title=p.name, p=p)

    @app.get("/payment")
    def payment():
        product_slug = (request.args.get("productSlug") or "").strip()
        plan_id = (request.args.get("planId") or "").strip()
        p, plan = find_selection(product_slug, plan_id)
        if not p or not plan:
            return redirect(url_for("home"))

        config: PaymentConfig = load_doc("payment_config.json")
        return render_template(
            "index.html",
            view="payment",
            title="Complete Your Purchase",
            p=p,
            plan=plan,
            config=config,
            confirmation_url=url_for("confirmation", productSlug=p.slug, planId=plan.id, price=plan.salePriceMMK),
        )

    @app.get("/confirmation")
    def confirmation():
        product_slug = (request.args.get("productSlug") or "").strip()
        plan_id = (request.args.get("planId") or "").strip()
        paid = to_number(request.args.get("price"))
        config: PaymentConfig = load_doc("payment_config.json")

        p, plan = find_selection(product_slug, plan_id)
        if p and plan and paid is not None:
            summary = {"product": p.name, "plan": plan.name, "price": format_mmk(paid)}
            receipt = build_receipt(p, plan, paid, config, datetime.now())
        else:
            summary = {"product": "N/A", "plan": "N/A", "price": "N/A"}
            receipt = "Error: Could not retrieve order details."

        return render_template(
            "index.html",
            view="confirmation",
            title="Thank You!",
            summary=summary,
            receipt=receipt,
            config=config,
        )

    @app.get("/placeholder.png")
    def placeholder():
        data = photo.render_placeholder(
            request.args.get("width"), request.args.get("height"), request.args.get("text") or ""
        )
        return Response(data, mimetype="image/png")

    # -------------------------
    # Admin JSON API
    # -------------------------
    @app.route("/admin-data", methods=["GET", "POST"])
    @app.route("/api/admin/data", methods=["GET", "POST"])
    def admin_data():
        if not is_development():
            logger.warning("Refused %s %s outside development mode", request.method, request.path)
            return jsonify({"error": DEV_ONLY_MESSAGE}), 403

        name = (request.args.get("file") or "").strip()
        if not is_allowed(name):
            return jsonify({"error": "Invalid or missing file parameter"}), 400

        store = get_store()
        if request.method == "GET":
            try:
                return jsonify(store.read(name))
            except StoreError as e:
                logger.error("Error reading %s: %s", name, e)
                return jsonify({"error": f"Failed to read {name}"}), 500

        body = request.get_json(force=True, silent=True)
        if body is None and request.get_data(as_text=True).strip() != "null":
            return jsonify({"error": "Invalid JSON body"}), 400
        try:
            store.write(name, body)
        except StoreError as e:
            logger.error("Error writing %s: %s", name, e)
            return jsonify({"error": f"Failed to write {name}"}), 500
        return jsonify({"message": f"{name} updated successfully"})

    # -------------------------
    # Admin pages
    # -------------------------
    @app.get("/admin")
    def admin():
        if not is_development():
            logger.warning("Refused admin dashboard outside development mode")
            return render_template("edit.html", view="denied", title="Access Denied"), 403
        return render_template("edit.html", view="dashboard", title="Admin Dashboard")

    def _products_action(editor, action: str, form, state: Dict[str, Any]) -> Optional[str]:
        if action == "new_product":
            state.update(editing=True, item=editor.new_product().to_dict(), original=None)
            return None
        if action == "edit_product":
            p = editor.find(form.get("slug") or "")
            if p is None:
                raise ValidationError("Product not found in the list.")
            state.update(editing=True, item=p.to_dict(), original=p.slug, plan_form={"id": uuid.uuid4().hex[:8]})
            return None
        if action == "save_product":
            state.update(editing=True, item=form.to_dict(), original=(form.get("original_slug") or None))
            saved = editor.save_product(form, original_slug=state["original"])
            state.update(item=saved.to_dict(), original=saved.slug, plan_form={"id": uuid.uuid4().hex[:8]})
            return f"{saved.name} has been updated in the list. Remember to persist all changes."
        if action == "delete_product":
            slug = form.get("slug") or ""
            editor.delete_product(slug, confirmed=(form.get("confirm") == "yes"))
            return f"Product with slug {slug} removed from list. Persist to save changes."
        if action in ("edit_plan", "save_plan", "delete_plan"):
            slug = form.get("slug") or ""
            p = editor.find(slug)
            if p is None:
                raise ValidationError("No product selected.")
            state.update(editing=True, item=p.to_dict(), original=slug, plan_form={"id": uuid.uuid4().hex[:8]})
            if action == "edit_plan":
                index = _int_arg(form, "plan_index")
                if index is None or not 0 <= index < len(p.plans):
                    raise ValidationError("Plan not found.")
                plan_form = p.plans[index].to_dict()
                plan_form["features"] = ", ".join(p.plans[index].features)
                state.update(plan_form=plan_form, plan_index=index)
                return None
            if action == "save_plan":
                index = _int_arg(form, "plan_index")
                state.update(plan_form=form.to_dict(), plan_index=index)
                plan = editor.save_plan(slug, form, editing_index=index)
                state.update(item=editor.find(slug).to_dict(), plan_form={"id": uuid.uuid4().hex[:8]}, plan_index=None)
                return f"Plan {plan.name} updated for current product."
            plan_id = form.get("plan_id") or ""
            editor.delete_plan(slug, plan_id)
            state.update(item=editor.find(slug).to_dict())
            return f"Plan with ID {plan_id} removed from current product."
        if action == "persist":
            editor.persist(get_store())
            return "All products persisted to file."
        return None

    def _faqs_action(editor, action: str, form, state: Dict[str, Any]) -> Optional[str]:
        if action == "new_faq":
            state.update(editing=True, item=editor.new_faq().to_dict())
            return None
        if action == "edit_faq":
            faq = editor.find(form.get("id") or "")
            if faq is None:
                raise ValidationError("FAQ not found in the list.")
            state.update(editing=True, item=faq.to_dict())
            return None
        if action == "save_faq":
            state.update(editing=True, item=form.to_dict())
            saved = editor.save_faq(form)
            state.update(editing=False, item=None)
            return f'FAQ "{saved.question[:20]}..." updated in list. Persist to save changes.'
        if action == "delete_faq":
            editor.delete_faq(form.get("id") or "", confirmed=(form.get("confirm") == "yes"))
            return "FAQ removed from list. Persist to save changes."
        if action == "persist":
            editor.persist(get_store())
            return "FAQs saved successfully to file."
        return None

    def _notes_action(editor, action: str, form, state: Dict[str, Any]) -> Optional[str]:
        if action in ("save_title", "persist") and "title" in form:
            editor.set_title(form.get("title") or "")
        if action == "save_title":
            return "Title updated. Persist to save."
        if action == "edit_note":
            index = _int_arg(form, "note_index")
            if index is None or not 0 <= index < len(editor.document.notes):
                raise ValidationError("Note not found.")
            state.update(note_text=editor.document.notes[index], note_index=index)
            return None
        if action == "save_note":
            index = _int_arg(form, "note_index")
            state.update(note_text=form.get("text") or "", note_index=index)
            editor.save_note(form.get("text") or "", editing_index=index)
            state.update(note_text="", note_index=None)
            if index is not None:
                return "Note updated in the list. Persist to save."
            return "Note added to the list. Persist to save."
        if action == "delete_note":
            index = _int_arg(form, "note_index")
            if index is None:
                raise ValidationError("Note not found.")
            editor.delete_note(index, confirmed=(form.get("confirm") == "yes"))
            return "Note removed from the list. Persist to save."
        if action == "persist":
            editor.persist(get_store())
            return "Seller notes saved successfully to file."
        return None

    def _payment_action(editor, action: str, form, state: Dict[str, Any]) -> Optional[str]:
        if action in ("save_settings", "persist"):
            settings = {k: form.get(k) for k in editor.SETTINGS if k in form}
            if settings:
                editor.update_settings(**settings)
        if action == "save_settings":
            return "Settings updated. Persist to save."
        if action == "new_account":
            state.update(editing=True, item={"type": "", "name": "", "number": "", "details": ""}, account_index=None)
            return None
        if action == "edit_account":
            index = _int_arg(form, "account_index")
            if index is None or not 0 <= index < len(editor.document.accounts):
                raise ValidationError("Account not found.")
            state.update(editing=True, item=editor.document.accounts[index].to_dict(), account_index=index)
            return None
        if action == "save_account":
            index = _int_arg(form, "account_index")
            state.update(editing=True, item=form.to_dict(), account_index=index)
            editor.save_account(form, editing_index=index)
            state.update(editing=False, item=None, account_index=None)
            if index is not None:
                return "Account updated in list. Persist to save."
            return "Account added to list. Persist to save."
        if action == "delete_account":
            index = _int_arg(form, "account_index")
            if index is None:
                raise ValidationError("Account not found.")
            editor.delete_account(index, confirmed=(form.get("confirm") == "yes"))
            return "Account removed from list. Persist to save."
        if action == "persist":
            editor.persist(get_store())
            return "Payment configuration saved successfully to file."
        return None

    SECTION_ACTIONS = {
        "products": _products_action,
        "faqs": _faqs_action,
        "notes": _notes_action,
        "payment-config": _payment_action,
    }
    SECTION_TITLES = {
        "products": "Manage Products",
        "faqs": "Manage FAQs",
        "notes": "Manage Seller Notes",
        "payment-config": "Manage Payment Configuration",
    }

    @app.route("/admin/<section>", methods=["GET", "POST"])
    def admin_section(section: str):
        if section not in EDITORS:
            abort(404)
        wants_json = request.method == "POST" and is_ajax_request()
        editor_cls = EDITORS[section]

        def _render(editor: Optional[Editor], state=None, notice=None, error=None, status=200):
            if wants_json:
                if error:
                    return jsonify({"ok": False, "error": error}), status
                payload = {"ok": True, "notice": notice}
                if editor is not None:
                    payload.update(working=dump_working(editor), document=editor.dump())
                return jsonify(payload), status
            return (
                render_template(
                    "edit.html",
                    view=section,
                    title=SECTION_TITLES[section],
                    editor=editor,
                    doc=editor.document if editor is not None else None,
                    working=dump_working(editor) if editor is not None else "",
                    state=state or {},
                    notice=notice,
                    error=error,
                ),
                status,
            )

        if not is_development():
            logger.warning("Refused admin page %s outside development mode", section)
            if wants_json:
                return jsonify({"ok": False, "error": DEV_ONLY_MESSAGE}), 403
            return render_template("edit.html", view="denied", title="Access Denied"), 403

        store = get_store()

        def _reload() -> Editor:
            return editor_cls.from_raw(store.read(editor_cls.document_name))

        if request.method == "GET":
            try:
                editor = _reload()
            except StoreError as e:
                return _render(None, error=f"Could not load {editor_cls.document_name}: {e}", status=500)
            return _render(editor)

        form = request.form
        action = (form.get("action") or "").strip()

        try:
            editor = load_working(section, form.get("working") or "")
        except BadSignature:
            logger.warning("Discarded an invalid working copy for %s", section)
            try:
                editor = _reload()
            except StoreError as e:
                return _render(None, error=f"Could not load {editor_cls.document_name}: {e}", status=500)
            return _render(editor, error="Working copy could not be restored; reloaded from file.", status=400)

        if action == "reload":
            try:
                editor = _reload()
            except StoreError as e:
                return _render(None, error=f"Could not load {editor_cls.document_name}: {e}", status=500)
            return _render(editor, notice="Reloaded from file; unsaved changes discarded.")

        state: Dict[str, Any] = {}
        try:
            notice = SECTION_ACTIONS[section](editor, action, form, state)
        except ValidationError as e:
            # The working copy is unchanged; reopen the form with the submitted values.
            return _render(editor, state=state, error=str(e), status=400)
        except StoreError as e:
            logger.error("Persist of %s failed: %s", editor_cls.document_name, e)
            return _render(editor, state=state, error=f"Could not save {editor_cls.document_name}: {e}", status=500)
        return _render(editor, state=state, notice=notice)

    return app


app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=str(app.config["APP_ENV"]).lower() == "development")
