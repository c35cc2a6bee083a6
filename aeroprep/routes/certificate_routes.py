"""
Certificates
"""
from flask import Blueprint, current_app, jsonify, request

from aeroprep.core.auth import current_user_id, is_admin, login_required
from aeroprep.core.schemas import CertificateVerifyRequest

certificate_bp = Blueprint('certificate', __name__)


@certificate_bp.route('/<int:attempt_id>')
@login_required
def get_certificate(attempt_id):
    certificate = current_app.certificate_issuer.mint(attempt_id, current_user_id(), is_admin=is_admin())
    return jsonify({'success': True, 'certificate': certificate})


@certificate_bp.route('/verify', methods=['POST'])
def verify_certificate():
    """Public endpoint; anyone holding a number may check it"""
    data = CertificateVerifyRequest.model_validate(request.get_json(silent=True) or {})
    certificate = current_app.certificate_issuer.verify(data.certificate_number)
    return jsonify({'success': True, 'valid': True, 'certificate': certificate})
