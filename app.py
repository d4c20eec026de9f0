import io
import logging
import os
from functools import wraps

from dotenv import load_dotenv
from flask import Flask, request, session, jsonify, g, send_file, send_from_directory
from flask_wtf.csrf import CSRFProtect, CSRFError, generate_csrf

load_dotenv()
from config import Config
from services import accounts
from services import checklist
from services import department_mapping as dm
from services import examinations
from services import question_papers
from services import reports
from services import scholars
from services import supervisors
from services import workflow as wf
from services.errors import ServiceError, ValidationError
from services.scholar_fields import db_to_form, export_columns
from services.spreadsheets import SpreadsheetError, export_rows, import_scholars, read_examination_sheet
from utils.auth import (
    DIRECTOR_ROLES,
    authenticate,
    get_current_user,
    is_logged_in,
    login_user,
    logout_user,
    normalize_role,
)
from utils.database import close_db
from utils.helpers import parse_id_list, save_uploaded_file
from utils.rate_limit import is_rate_limited, rate_limit, record_attempt, reset as reset_rate_limit

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
log = logging.getLogger(__name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

app = Flask(__name__)
app.config.from_object(Config)
csrf = CSRFProtect(app)
# CSRF configuration: enable by default, allow override via env var
app.config['WTF_CSRF_ENABLED'] = os.environ.get('WTF_CSRF_ENABLED', 'true').lower() in ('1', 'true', 'yes')
app.config['WTF_CSRF_TIME_LIMIT'] = None

# Secure session cookies; SECURE should be True in production (HTTPS)
app.config['SESSION_COOKIE_SECURE'] = os.environ.get('SESSION_COOKIE_SECURE', 'false').lower() in ('1', 'true', 'yes')
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = os.environ.get('SESSION_COOKIE_SAMESITE', 'Lax')
app.config['SESSION_REFRESH_EACH_REQUEST'] = True


@app.teardown_appcontext
def teardown_database(exception=None):
    """Ensure database connections are closed after each request."""
    close_db(exception)


@app.after_request
def set_security_headers(response):
    """Add security headers to all responses."""
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    response.headers['Content-Security-Policy'] = "frame-ancestors 'none'"
    if not app.debug and request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ============================================================================
# ERROR HANDLING
# ============================================================================

@app.errorhandler(ServiceError)
def handle_service_error(e):
    if e.status_code >= 500:
        log.exception('❌ %s', e.message)
    else:
        log.info('⚠️ %s %s -> %s: %s', request.method, request.path, e.status_code, e.message)
    return jsonify(e.to_dict()), e.status_code


@app.errorhandler(SpreadsheetError)
def handle_spreadsheet_error(e):
    log.warning('⚠️ Spreadsheet rejected: %s', e)
    return jsonify({'success': False, 'error': str(e)}), 400


@app.errorhandler(CSRFError)
def handle_csrf_error(e):
    log.warning('❌ CSRF Error: %s', e.description)
    return jsonify({'success': False, 'error': 'CSRF failed', 'detail': e.description}), 400


@app.errorhandler(413)
def handle_too_large(e):
    return jsonify({'success': False, 'error': 'Uploaded file is too large'}), 413


@app.errorhandler(404)
def handle_not_found(e):
    return jsonify({'success': False, 'error': 'Not found'}), 404


@app.errorhandler(405)
def handle_method_not_allowed(e):
    return jsonify({'success': False, 'error': 'Method not allowed'}), 405


# ============================================================================
# REQUEST HELPERS
# ============================================================================

def login_required(*roles):
    """Decorator enforcing authentication and optional role-based access control."""

    def decorator(view_func):
        @wraps(view_func)
        def wrapped_view(*args, **kwargs):
            if not is_logged_in():
                return jsonify({'success': False, 'error': 'Authentication required'}), 401

            user = get_current_user()
            if not user:
                return jsonify({'success': False, 'error': 'Authentication required'}), 401
            g.user = user

            if roles and (user.get('role') or '').lower() not in {r.lower() for r in roles}:
                log.info('⚠️ %s (%s) denied %s', user.get('email'), user.get('role'), request.path)
                return jsonify({'success': False, 'error': 'Not authorized'}), 403

            return view_func(*args, **kwargs)

        return wrapped_view

    return decorator


def current_user():
    return g.user


def payload():
    """JSON body, falling back to form data."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    return data


def ok(**data):
    return jsonify({'success': True, **data})


def ids_from_payload(data, key='ids'):
    ids = parse_id_list(data.get(key))
    if not ids:
        raise ValidationError('Select at least one record')
    return ids


def user_faculty():
    faculty = dm.normalize_faculty(current_user().get('faculty'))
    if not faculty:
        raise ValidationError('Your account has no faculty assigned')
    return faculty


def user_department_code():
    code = (current_user().get('department_code') or '').upper()
    if not code or code == dm.UNKNOWN_CODE:
        raise ValidationError('Your account has no department assigned')
    return code


def read_uploaded_spreadsheet(reader):
    """Save the uploaded sheet, parse it with reader and delete the saved copy."""
    meta, error = save_uploaded_file(
        request.files.get('file'),
        f"user{current_user().get('id')}",
        app.config['SPREADSHEET_EXTENSIONS'],
        subfolder='imports',
    )
    if error:
        raise ValidationError(error)
    path = meta['storage_path']
    try:
        return reader(path)
    finally:
        try:
            os.remove(path)
        except OSError as e:
            log.warning('⚠️ Could not remove uploaded sheet %s: %s', path, e)


def xlsx_response(content, filename):
    return send_file(io.BytesIO(content), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


# ============================================================================
# AUTHENTICATION
# ============================================================================

@app.route('/')
def index():
    return ok(service='PhD scholar admissions portal', logged_in=bool(is_logged_in()))


@app.route('/api/csrf-token')
def csrf_token():
    return ok(csrf_token=generate_csrf())


@app.route('/login', methods=['POST'])
def login():
    """Log in a director, admin, coordinator or department user."""
    identifier = request.remote_addr or 'unknown'
    key = f"login:{identifier}"
    if is_rate_limited(key, app.config['LOGIN_RATE_LIMIT'], app.config['LOGIN_RATE_WINDOW']):
        return jsonify({'success': False, 'error': 'Too many login attempts. Please try again later.'}), 429

    data = payload()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    if not email or not password:
        record_attempt(key)
        return jsonify({'success': False, 'error': 'Email and password are required'}), 400

    user = authenticate(email, password)
    if not user:
        record_attempt(key)
        return jsonify({'success': False, 'error': 'Invalid email or password'}), 401

    expected_role = normalize_role(data.get('role'))
    if expected_role and expected_role != user['role'] and not (
        expected_role in DIRECTOR_ROLES and user['role'] in DIRECTOR_ROLES
    ):
        record_attempt(key)
        return jsonify({'success': False, 'error': f'This account cannot sign in as {expected_role}'}), 403

    login_user(user)
    session.permanent = True
    reset_rate_limit(key)
    log.info('✅ %s logged in as %s', email, user['role'])
    return ok(user=get_current_user())


@app.route('/logout', methods=['POST'])
def logout():
    logout_user()
    return ok()


@app.route('/api/me')
@login_required()
def me():
    return ok(user=current_user())


@app.route('/api/account/password', methods=['POST'])
@login_required()
def change_own_password():
    data = payload()
    accounts.change_password(current_user().get('id'), data.get('current_password'), data.get('new_password'))
    return ok()


@app.route('/api/faculties')
@login_required()
def faculties():
    departments = {}
    for code, faculty in sorted(dm.DEPARTMENT_TO_FACULTY.items()):
        departments.setdefault(faculty, []).append(code)
    return ok(
        faculties=[{'name': name, 'short_name': dm.FACULTY_SHORT_NAMES[name], 'departments': departments.get(name, [])}
                   for name in dm.FACULTIES],
        program_types=list(dm.PROGRAM_TYPES),
    )


# ============================================================================
# DIRECTOR: SCHOLARS
# ============================================================================

@app.route('/api/director/dashboard')
@login_required(*DIRECTOR_ROLES)
def director_dashboard():
    return ok(dashboard=reports.director_dashboard())


@app.route('/api/director/scholars', methods=['GET'])
@login_required(*DIRECTOR_ROLES)
def director_scholars():
    search = request.args.get('search')
    stage = request.args.get('stage')
    if stage == 'all':
        rows = scholars.list_scholars(search=search)
    elif stage:
        if stage not in wf.STAGES:
            raise ValidationError(f'Unknown stage: {stage}')
        rows = [row for row in scholars.list_scholars(search=search) if row['stage'] == stage]
    else:
        rows = scholars.director_inbox(search=search)
    return ok(scholars=rows, count=len(rows))


@app.route('/api/director/scholars', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_add_scholar():
    scholar_id = scholars.create_scholar(payload(), actor=current_user())
    return ok(scholar=scholars.get_scholar(scholar_id)), 201


@app.route('/api/director/scholars/<int:scholar_id>', methods=['GET'])
@login_required(*DIRECTOR_ROLES)
def director_scholar_detail(scholar_id):
    scholar = scholars.get_scholar(scholar_id)
    return ok(scholar=scholar, form=db_to_form(scholar), activity=scholars.list_activity(scholar_id))


@app.route('/api/director/scholars/<int:scholar_id>', methods=['PUT'])
@login_required(*DIRECTOR_ROLES)
def director_update_scholar(scholar_id):
    return ok(scholar=scholars.update_scholar(scholar_id, payload(), actor=current_user()))


@app.route('/api/director/scholars/<int:scholar_id>', methods=['DELETE'])
@login_required(*DIRECTOR_ROLES)
def director_delete_scholar(scholar_id):
    scholars.delete_scholar(scholar_id, actor=current_user())
    return ok()


@app.route('/api/director/scholars/import', methods=['POST'])
@rate_limit(max_requests=20, window_seconds=60, scope="scholar-import")
@login_required(*DIRECTOR_ROLES)
def director_import_scholars():
    rows = read_uploaded_spreadsheet(import_scholars)
    created, failed = scholars.bulk_create(rows, actor=current_user())
    return ok(created=len(created), failed=failed, duplicates=scholars.find_duplicates())


@app.route('/api/director/scholars/export')
@login_required(*DIRECTOR_ROLES)
def director_export_scholars():
    stage = request.args.get('stage')
    rows = scholars.list_scholars()
    if stage and stage != 'all':
        rows = [row for row in rows if row['stage'] == stage]
    return xlsx_response(export_rows(rows, export_columns()), 'scholars.xlsx')


@app.route('/api/director/scholars/duplicates')
@login_required(*DIRECTOR_ROLES)
def director_duplicates():
    groups = scholars.find_duplicates()
    return ok(duplicates=groups, count=len(groups))


@app.route('/api/director/scholars/<int:scholar_id>/forward', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_forward_scholar(scholar_id):
    scholar = scholars.apply_action(
        scholar_id, 'forward_to_faculty', current_user(), faculty=payload().get('faculty')
    )
    return ok(scholar=scholar)


@app.route('/api/director/scholars/forward-all', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_forward_all():
    return ok(**scholars.forward_all_to_faculty(current_user()))


@app.route('/api/director/scholars/<int:scholar_id>/transfer', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_transfer_scholar(scholar_id):
    scholar = scholars.apply_action(
        scholar_id, 'transfer_to_faculty', current_user(), faculty=payload().get('faculty')
    )
    return ok(scholar=scholar)


@app.route('/api/director/verified')
@login_required(*DIRECTOR_ROLES)
def director_verified():
    rows = scholars.director_verified(faculty=request.args.get('faculty'), search=request.args.get('search'))
    return ok(scholars=rows, count=len(rows))


@app.route('/api/director/queries')
@login_required(*DIRECTOR_ROLES)
def director_queries():
    rows = scholars.director_queries(search=request.args.get('search'))
    return ok(scholars=rows, count=len(rows))


@app.route('/api/director/scholars/<int:scholar_id>/resolve-query', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_resolve_query(scholar_id):
    return ok(scholar=scholars.apply_action(scholar_id, 'resolve_query', current_user()))


@app.route('/api/director/scholars/sync-status', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_sync_status():
    return ok(fixed=scholars.sync_statuses())


# ============================================================================
# DIRECTOR: EXAMINATIONS AND RESULTS
# ============================================================================

@app.route('/api/director/examinations')
@login_required(*DIRECTOR_ROLES)
def director_examinations():
    records = examinations.list_records(
        faculty=request.args.get('faculty'), status=request.args.get('status'), search=request.args.get('search')
    )
    return ok(records=records, count=len(records))


@app.route('/api/director/examinations/from-verified', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_examinations_from_verified():
    return ok(created=examinations.create_records_from_verified())


@app.route('/api/director/examinations/import', methods=['POST'])
@rate_limit(max_requests=20, window_seconds=60, scope="exam-import")
@login_required(*DIRECTOR_ROLES)
def director_import_examinations():
    created = examinations.import_records(read_uploaded_spreadsheet(read_examination_sheet))
    return ok(created=len(created))


@app.route('/api/director/examinations/<int:record_id>/marks', methods=['PUT'])
@login_required(*DIRECTOR_ROLES)
def director_update_marks(record_id):
    data = payload()
    record = examinations.update_marks(record_id, written=data.get('written_marks'),
                                       interview=data.get('interview_marks'))
    return ok(record=record)


@app.route('/api/director/examinations/<int:record_id>/forward', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_forward_examination(record_id):
    return ok(record=examinations.forward_record(record_id))


@app.route('/api/director/examinations/forward-all', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_forward_all_examinations():
    return ok(**examinations.forward_all())


@app.route('/api/director/examinations/type-counts')
@login_required(*DIRECTOR_ROLES)
def director_examination_type_counts():
    return ok(counts=examinations.type_counts(faculty=request.args.get('faculty')))


@app.route('/api/director/results')
@login_required(*DIRECTOR_ROLES)
def director_results():
    return ok(results=examinations.results(faculty=request.args.get('faculty')))


@app.route('/api/director/results/export')
@login_required(*DIRECTOR_ROLES)
def director_export_results():
    columns = [
        ('rank', 'Rank'), ('application_no', 'Application No'), ('registered_name', 'Name'),
        ('faculty', 'Faculty'), ('department', 'Department'), ('program_type', 'Type'),
        ('written_marks', 'Written Marks'), ('interview_marks', 'Interview Marks'), ('total_marks', 'Total Marks'),
    ]
    rows = examinations.results(faculty=request.args.get('faculty'))
    return xlsx_response(export_rows(rows, columns, sheet_name='Results'), 'results.xlsx')


@app.route('/api/director/results/publish', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_publish_results():
    data = payload()
    published = examinations.publish_results(data.get('faculty'), parse_id_list(data.get('ids')))
    return ok(published=published)


# ============================================================================
# DIRECTOR: SUPERVISORS
# ============================================================================

@app.route('/api/director/supervisors', methods=['GET'])
@login_required(*DIRECTOR_ROLES)
def director_supervisors():
    rows = supervisors.list_supervisors(faculty=request.args.get('faculty'),
                                        department=request.args.get('department'))
    return ok(supervisors=rows)


@app.route('/api/director/supervisors', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_add_supervisor():
    supervisor_id = supervisors.create_supervisor(payload())
    return ok(supervisor=supervisors.get_supervisor(supervisor_id)), 201


@app.route('/api/director/supervisors/<int:supervisor_id>', methods=['PUT'])
@login_required(*DIRECTOR_ROLES)
def director_update_supervisor(supervisor_id):
    return ok(supervisor=supervisors.update_supervisor(supervisor_id, payload()))


@app.route('/api/director/supervisors/<int:supervisor_id>', methods=['DELETE'])
@login_required(*DIRECTOR_ROLES)
def director_delete_supervisor(supervisor_id):
    supervisors.delete_supervisor(supervisor_id)
    return ok()


@app.route('/api/director/supervisors/qualified')
@login_required(*DIRECTOR_ROLES)
def director_qualified_scholars():
    rows = supervisors.qualified_scholars(
        request.args.get('faculty'), request.args.get('department'), request.args.get('type', 'all')
    )
    return ok(scholars=rows, count=len(rows))


@app.route('/api/director/supervisors/<int:supervisor_id>/assign', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_assign_supervisor(supervisor_id):
    record_id = payload().get('record_id')
    if not record_id:
        raise ValidationError('record_id is required')
    return ok(record=supervisors.assign(supervisor_id, int(record_id)))


@app.route('/api/director/examinations/<int:record_id>/unassign', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_unassign_supervisor(record_id):
    return ok(record=supervisors.unassign(record_id))


@app.route('/api/director/supervisors/vacancies')
@login_required(*DIRECTOR_ROLES)
def director_supervisor_vacancies():
    return ok(vacancies=supervisors.vacancies(faculty=request.args.get('faculty')))


@app.route('/api/director/admitted')
@login_required(*DIRECTOR_ROLES)
def director_admitted():
    return ok(scholars=supervisors.admitted_scholars(faculty=request.args.get('faculty')))


@app.route('/api/director/checklist')
@login_required(*DIRECTOR_ROLES)
def director_checklist():
    rows = checklist.list_admitted(faculty=request.args.get('faculty'), status=request.args.get('status'))
    return ok(scholars=rows, count=len(rows))


@app.route('/api/director/checklist/<int:record_id>', methods=['PUT'])
@login_required(*DIRECTOR_ROLES)
def director_save_checklist(record_id):
    data = payload()
    return ok(record=checklist.save_checklist(record_id, data.get('items'), data.get('notes')))


@app.route('/api/director/checklist/<int:record_id>/complete', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_complete_checklist(record_id):
    return ok(record=checklist.complete_verification(record_id, payload().get('notes')))


# ============================================================================
# DIRECTOR: ACCOUNTS
# ============================================================================

@app.route('/api/director/accounts', methods=['GET'])
@login_required(*DIRECTOR_ROLES)
def director_accounts():
    return ok(accounts=accounts.list_accounts(role=request.args.get('role'), faculty=request.args.get('faculty')))


@app.route('/api/director/accounts', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_create_account():
    data = payload()
    if normalize_role(data.get('role')) == 'director':
        raise ValidationError('The director account is created with manage.py')
    user_id = accounts.create_account(
        data.get('email'), data.get('password'), data.get('role'), full_name=data.get('full_name', ''),
        faculty=data.get('faculty'), department=data.get('department'), phone=data.get('phone'),
    )
    return ok(account=accounts.get_account(user_id)), 201


@app.route('/api/director/accounts/<int:user_id>', methods=['PUT'])
@login_required(*DIRECTOR_ROLES)
def director_update_account(user_id):
    return ok(account=accounts.update_account(user_id, payload(), actor=current_user()))


@app.route('/api/director/accounts/<int:user_id>/status', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_account_status(user_id):
    return ok(account=accounts.set_status(user_id, payload().get('status'), actor=current_user()))


@app.route('/api/director/accounts/<int:user_id>/reset-password', methods=['POST'])
@login_required(*DIRECTOR_ROLES)
def director_reset_password(user_id):
    password = accounts.reset_password(user_id, payload().get('password'), actor=current_user())
    return ok(password=password)


@app.route('/api/director/accounts/<int:user_id>', methods=['DELETE'])
@login_required(*DIRECTOR_ROLES)
def director_delete_account(user_id):
    if user_id == current_user().get('id'):
        raise ValidationError('You cannot delete your own account')
    accounts.delete_account(user_id)
    return ok()


# ============================================================================
# FACULTY COORDINATOR
# ============================================================================

@app.route('/api/faculty/dashboard')
@login_required('coordinator')
def faculty_dashboard():
    return ok(dashboard=reports.faculty_dashboard(user_faculty()))


@app.route('/api/faculty/scholars')
@login_required('coordinator')
def faculty_scholars():
    rows = scholars.faculty_inbox(user_faculty(), search=request.args.get('search'))
    return ok(scholars=rows, count=len(rows))


@app.route('/api/faculty/scholars/<int:scholar_id>/forward', methods=['POST'])
@login_required('coordinator')
def faculty_forward_scholar(scholar_id):
    scholar = scholars.apply_action(
        scholar_id, 'forward_to_department', current_user(), department_code=payload().get('department_code')
    )
    return ok(scholar=scholar)


@app.route('/api/faculty/scholars/forward-batch', methods=['POST'])
@login_required('coordinator')
def faculty_forward_batch():
    ids = ids_from_payload(payload())
    return ok(**scholars.apply_bulk_action(ids, 'forward_to_department', current_user()))


@app.route('/api/faculty/returns')
@login_required('coordinator')
def faculty_returns():
    rows = scholars.faculty_returns(user_faculty(), search=request.args.get('search'))
    return ok(scholars=rows, count=len(rows))


@app.route('/api/faculty/forward-to-director', methods=['POST'])
@login_required('coordinator')
def faculty_forward_to_director():
    ids = ids_from_payload(payload())
    return ok(**scholars.apply_bulk_action(ids, 'forward_to_director', current_user()))


@app.route('/api/faculty/queries')
@login_required('coordinator')
def faculty_queries():
    rows = scholars.faculty_queries(user_faculty(), search=request.args.get('search'))
    return ok(scholars=rows, count=len(rows))


@app.route('/api/faculty/queries/<int:scholar_id>/forward', methods=['POST'])
@login_required('coordinator')
def faculty_forward_query(scholar_id):
    return ok(scholar=scholars.apply_action(scholar_id, 'forward_to_department', current_user()))


@app.route('/api/faculty/examinations')
@login_required('coordinator')
def faculty_examinations():
    records = examinations.list_records(faculty=user_faculty(), search=request.args.get('search'))
    return ok(records=records, count=len(records))


@app.route('/api/faculty/examinations/forward-to-director', methods=['POST'])
@login_required('coordinator')
def faculty_forward_interviews():
    ids = ids_from_payload(payload())
    return ok(**examinations.forward_interviews_to_director(ids, faculty=user_faculty()))


@app.route('/api/faculty/results')
@login_required('coordinator')
def faculty_results():
    return ok(results=examinations.results(faculty=user_faculty(), published_only=True))


@app.route('/api/faculty/results/publish', methods=['POST'])
@login_required('coordinator')
def faculty_publish_results():
    code = (payload().get('department_code') or '').upper()
    return ok(published=examinations.publish_to_department(user_faculty(), code))


# ============================================================================
# DEPARTMENT
# ============================================================================

@app.route('/api/department/dashboard')
@login_required('department')
def department_dashboard():
    return ok(dashboard=reports.department_dashboard(user_department_code()))


@app.route('/api/department/scholars')
@login_required('department')
def department_scholars():
    stage = request.args.get('stage')
    if stage and stage not in wf.STAGES:
        raise ValidationError(f'Unknown stage: {stage}')
    rows = scholars.department_inbox(user_department_code(), stage=stage, search=request.args.get('search'))
    return ok(scholars=rows, count=len(rows))


@app.route('/api/department/scholars/<int:scholar_id>/approve', methods=['POST'])
@login_required('department')
def department_approve(scholar_id):
    return ok(scholar=scholars.apply_action(scholar_id, 'approve', current_user()))


@app.route('/api/department/scholars/<int:scholar_id>/reject', methods=['POST'])
@login_required('department')
def department_reject(scholar_id):
    reason = payload().get('reason')
    return ok(scholar=scholars.apply_action(scholar_id, 'reject', current_user(), reason=reason))


@app.route('/api/department/scholars/<int:scholar_id>/query', methods=['POST'])
@login_required('department')
def department_query(scholar_id):
    query_text = payload().get('query')
    return ok(scholar=scholars.apply_action(scholar_id, 'raise_query', current_user(), query_text=query_text))


@app.route('/api/department/scholars/<int:scholar_id>/forward', methods=['POST'])
@login_required('department')
def department_forward(scholar_id):
    return ok(scholar=scholars.apply_action(scholar_id, 'return_to_faculty', current_user()))


@app.route('/api/department/scholars/forward-batch', methods=['POST'])
@login_required('department')
def department_forward_batch():
    ids = ids_from_payload(payload())
    return ok(**scholars.apply_bulk_action(ids, 'return_to_faculty', current_user()))


@app.route('/api/department/scholars/<int:scholar_id>/revert', methods=['POST'])
@login_required('department')
def department_revert(scholar_id):
    return ok(scholar=scholars.apply_action(scholar_id, 'revert', current_user()))


@app.route('/api/department/queries')
@login_required('department')
def department_queries():
    rows = scholars.department_queries(user_department_code(), search=request.args.get('search'))
    return ok(scholars=rows, count=len(rows))


@app.route('/api/department/rejected')
@login_required('department')
def department_rejected():
    rows = scholars.department_rejected(user_department_code(), search=request.args.get('search'))
    return ok(scholars=rows, count=len(rows))


@app.route('/api/department/interviews')
@login_required('department')
def department_interviews():
    records = examinations.list_records(department_code=user_department_code(), search=request.args.get('search'))
    return ok(records=records, count=len(records))


@app.route('/api/department/interviews/panel', methods=['POST'])
@login_required('department')
def department_assign_panel():
    data = payload()
    assigned = examinations.assign_panel(
        ids_from_payload(data), data.get('panel') or 1, data.get('evaluators') or [],
        department_code=user_department_code(),
    )
    return ok(assigned=assigned)


@app.route('/api/department/interviews/<int:record_id>/panel', methods=['DELETE'])
@login_required('department')
def department_remove_panel(record_id):
    return ok(record=examinations.remove_panel(record_id, department_code=user_department_code()))


@app.route('/api/department/interviews/<int:record_id>/marks', methods=['PUT'])
@login_required('department')
def department_interview_marks(record_id):
    marks = payload().get('marks') or []
    if not isinstance(marks, list):
        raise ValidationError('marks must be a list')
    record = examinations.save_interview_marks(record_id, marks, department_code=user_department_code())
    return ok(record=record)


@app.route('/api/department/interviews/forward', methods=['POST'])
@login_required('department')
def department_forward_interviews():
    ids = ids_from_payload(payload())
    return ok(**examinations.forward_interviews(ids, department_code=user_department_code()))


@app.route('/api/department/results')
@login_required('department')
def department_results():
    code = user_department_code()
    published = examinations.are_results_published(code)
    rows = examinations.results(department_code=code, published_only=True) if published else []
    return ok(published=published, results=rows)


# ============================================================================
# QUESTION PAPERS (all roles, scoped)
# ============================================================================

@app.route('/api/question-papers', methods=['GET'])
@login_required()
def question_paper_list():
    papers = question_papers.list_papers(
        current_user(), faculty=request.args.get('faculty'), search=request.args.get('search')
    )
    return ok(papers=papers)


@app.route('/api/question-papers/stats')
@login_required()
def question_paper_stats():
    return ok(stats=question_papers.statistics(current_user()))


@app.route('/api/question-papers', methods=['POST'])
@login_required()
def question_paper_create():
    paper_id = question_papers.create_paper(payload(), current_user())
    return ok(paper=question_papers.get_paper(paper_id, current_user())), 201


@app.route('/api/question-papers/<int:paper_id>', methods=['PUT'])
@login_required()
def question_paper_update(paper_id):
    return ok(paper=question_papers.update_paper(paper_id, payload(), current_user()))


@app.route('/api/question-papers/<int:paper_id>', methods=['DELETE'])
@login_required()
def question_paper_delete(paper_id):
    question_papers.delete_paper(paper_id, current_user())
    return ok()


@app.route('/api/question-papers/<int:paper_id>/sets/<int:slot>', methods=['POST'])
@rate_limit(max_requests=30, window_seconds=60, scope="paper-upload")
@login_required()
def question_paper_upload(paper_id, slot):
    question_papers.get_paper(paper_id, current_user())
    meta, error = save_uploaded_file(
        request.files.get('file'), f"paper{paper_id}_set{slot}", {'pdf', 'doc', 'docx'}, subfolder='question_papers'
    )
    if error:
        raise ValidationError(error)
    url = f"/api/question-papers/files/{meta['stored_filename']}"
    paper = question_papers.attach_set(paper_id, slot, meta['original_filename'], url, current_user())
    return ok(paper=paper)


@app.route('/api/question-papers/files/<path:filename>')
@login_required()
def question_paper_file(filename):
    question_papers.paper_for_file(filename, current_user())
    folder = os.path.join(app.config['UPLOAD_FOLDER'], 'question_papers')
    return send_from_directory(folder, filename, as_attachment=True)


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG', 'false').lower() in ('1', 'true', 'yes'))
