import json
import logging

from flask import Flask, request

from painel import app
from painel.utils.logging_config import (
    AUDIT_LOGGER_NAME,
    JsonFormatter,
    log_request_info,
    redact,
    setup_logging,
)


def _flush(*loggers):
    for logger in loggers:
        for handler in logger.handlers:
            handler.flush()


def _close(*loggers):
    for logger in loggers:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def test_redact_drops_secrets():
    assert redact({'email': 'a@b.com', 'password': 'x', 'api_token': 't', 'Senha': 's'}) == {'email': 'a@b.com'}
    assert redact(['password']) == ['password']


def test_json_formatter_includes_extras():
    record = logging.LogRecord('painel', logging.INFO, __file__, 10, 'Tarefa %s aprovada', (7,), None)
    record.request_id = 'abc123'
    record.resource_id = 7
    payload = json.loads(JsonFormatter().format(record))
    assert payload['message'] == 'Tarefa 7 aprovada'
    assert payload['level'] == 'INFO'
    assert payload['request_id'] == 'abc123'
    assert payload['resource_id'] == 7
    assert 'details' not in payload


def test_setup_logging_writes_files(tmp_path):
    other = Flask('painel_logging_check')
    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    try:
        logger = setup_logging(other, log_dir=str(tmp_path))
        logger.info('rotina concluida')
        logger.error('falha ao mover arquivo')
        audit_logger.info('TASK_APPROVED', extra={'action': 'task_approved', 'user_id': 3})
        with other.test_request_context('/api/v1/tasks/1/approve', method='POST'):
            log_request_info(
                request,
                other.response_class(status=200),
                2500,
                request_id='req-1',
            )
        _flush(logger, audit_logger)
    finally:
        _close(other.logger, audit_logger)
        audit_logger.propagate = True

    app_log = (tmp_path / 'app.log').read_text(encoding='utf-8')
    assert 'rotina concluida' in app_log
    error_log = (tmp_path / 'error.log').read_text(encoding='utf-8')
    assert 'falha ao mover arquivo' in error_log
    assert 'rotina concluida' not in error_log
    slow_log = (tmp_path / 'slow_requests.log').read_text(encoding='utf-8')
    assert 'SLOW REQUEST' in slow_log and 'req-1' in slow_log
    audit_line = (tmp_path / 'user_actions.jsonl').read_text(encoding='utf-8').splitlines()[0]
    assert json.loads(audit_line)['action'] == 'task_approved'
    assert 'TASK_APPROVED' not in app_log


def test_http_errors_are_json():
    client = app.test_client()
    resp = client.get('/api/v1/nada-aqui')
    assert resp.status_code == 404
    assert resp.get_json() == {'error': 'not_found', 'status': 404, 'message': 'Recurso não encontrado.'}
    resp = client.delete('/api/v1/ping')
    assert resp.status_code == 405
    assert resp.get_json()['error'] == 'method_not_allowed'
