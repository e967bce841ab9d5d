import json
from unittest.mock import patch, MagicMock

from conftest import OTHER_USER_ID, make_optimization


REPORT_JSON = json.dumps({
    "overallScore": 84,
    "dimensions": {"accuracy": 84, "fluency": 84, "logicalThinking": 84,
                   "professionalKnowledge": 84, "communication": 84, "confidence": 84},
})


def _failing_agent(mock_agent_cls):
    agent = MagicMock()
    agent.generate_interview_questions.side_effect = Exception("AI unavailable")
    mock_agent_cls.return_value = agent
    return agent


class TestQuestionEndpoints:
    """Test suite for /v1/interview/questions."""

    @patch('app.api.interview.AiAgent')
    def test_generate_questions(self, mock_agent_cls, client, auth_headers, optimization):
        _failing_agent(mock_agent_cls)

        response = client.post(f"/v1/interview/questions?optimization_id={optimization.optimization_id}&count=12",
                               headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 12
        assert [q["question_type"] for q in data].count("BEHAVIORAL") == 4
        assert all(q["tips"] for q in data)

    @patch('app.api.interview.AiAgent')
    def test_list_questions(self, mock_agent_cls, client, auth_headers, optimization, question_bank):
        response = client.get(f"/v1/interview/questions/{optimization.optimization_id}", headers=auth_headers)

        assert response.status_code == 200
        assert [q["question_id"] for q in response.json()] == [q.question_id for q in question_bank]

    @patch('app.api.interview.AiAgent')
    def test_foreign_optimization(self, mock_agent_cls, client, test_db, auth_headers):
        foreign = make_optimization(test_db, user_id=OTHER_USER_ID)

        response = client.post(f"/v1/interview/questions?optimization_id={foreign.optimization_id}", headers=auth_headers)

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    @patch('app.api.interview.AiAgent')
    def test_missing_optimization(self, mock_agent_cls, client, auth_headers):
        response = client.get("/v1/interview/questions/999", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_requires_authentication(self, client, optimization):
        response = client.get(f"/v1/interview/questions/{optimization.optimization_id}")
        assert response.status_code == 401

    @patch('app.api.interview.AiAgent')
    def test_rate_limited(self, mock_agent_cls, client, auth_headers, optimization):
        _failing_agent(mock_agent_cls)
        url = f"/v1/interview/questions?optimization_id={optimization.optimization_id}&count=10"

        statuses = [client.post(url, headers=auth_headers).status_code for _ in range(7)]

        assert statuses[:6] == [200] * 6
        assert statuses[6] == 429

    @patch('app.api.interview.AiAgent')
    def test_export_interview_prep(self, mock_agent_cls, client, auth_headers, optimization, question_bank):
        response = client.get(f"/v1/interview/export/{optimization.optimization_id}", headers=auth_headers)

        assert response.status_code == 200
        html = response.json()["html"]
        assert html.count('<section class="question">') == len(question_bank)
        assert "Backend Engineer at Acme" in html

    @patch('app.api.interview.AiAgent')
    def test_export_foreign_optimization(self, mock_agent_cls, client, test_db, auth_headers):
        foreign = make_optimization(test_db, user_id=OTHER_USER_ID)

        response = client.get(f"/v1/interview/export/{foreign.optimization_id}", headers=auth_headers)

        assert response.status_code == 403


class TestSessionEndpoints:
    """Test suite for the session lifecycle over HTTP."""

    @patch('app.api.interview.AiAgent')
    def test_full_session_flow(self, mock_agent_cls, client, auth_headers, optimization, question_bank, evaluation_task):
        response = client.post("/v1/interview/session", json={"optimization_id": optimization.optimization_id},
                               headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        session_id = body["session"]["session_id"]
        assert body["session"]["status"] == "IN_PROGRESS"
        assert body["first_question"]["question_id"] == question_bank[0].question_id

        response = client.post(f"/v1/interview/session/{session_id}/answer", json={"content": "My answer"},
                               headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["is_completed"] is False
        assert response.json()["next_question"]["question_id"] == question_bank[1].question_id

        response = client.get(f"/v1/interview/session/{session_id}/current", headers=auth_headers)
        state = response.json()
        assert state["progress"] == 1
        assert state["total"] == 10
        assert state["current_question"]["question_id"] == question_bank[1].question_id

        response = client.get(f"/v1/interview/active-session/{optimization.optimization_id}", headers=auth_headers)
        assert response.json()["session_id"] == session_id

        response = client.post(f"/v1/interview/session/{session_id}/end", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED"
        assert response.json()["end_time"] is not None
        assert evaluation_task.delay.call_count == 1

        response = client.get(f"/v1/interview/session/{session_id}", headers=auth_headers)
        assert response.json()["score"] is None

    @patch('app.api.interview.AiAgent')
    def test_empty_answer_is_rejected(self, mock_agent_cls, client, test_db, auth_headers, optimization):
        session_id = client.post("/v1/interview/session", json={"optimization_id": optimization.optimization_id},
                                 headers=auth_headers).json()["session"]["session_id"]

        response = client.post(f"/v1/interview/session/{session_id}/answer", json={"content": "   "}, headers=auth_headers)

        assert response.status_code == 422

    @patch('app.api.interview.AiAgent')
    def test_other_user_cannot_answer(self, mock_agent_cls, client, auth_headers, other_headers, optimization):
        session_id = client.post("/v1/interview/session", json={"optimization_id": optimization.optimization_id},
                                 headers=auth_headers).json()["session"]["session_id"]

        response = client.post(f"/v1/interview/session/{session_id}/answer", json={"content": "x"}, headers=other_headers)
        assert response.status_code == 403

        response = client.post(f"/v1/interview/session/{session_id}/end", headers=other_headers)
        assert response.status_code == 403

    @patch('app.api.interview.AiAgent')
    def test_no_active_session(self, mock_agent_cls, client, auth_headers, optimization):
        response = client.get(f"/v1/interview/active-session/{optimization.optimization_id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() is None

    @patch('app.api.interview.AiAgent')
    def test_chat_message(self, mock_agent_cls, client, auth_headers, optimization):
        mock_agent_cls.return_value.chat_with_interviewer.return_value = {"content": "Why AWS?", "audio_url": None}
        session_id = client.post("/v1/interview/session", json={"optimization_id": optimization.optimization_id},
                                 headers=auth_headers).json()["session"]["session_id"]

        response = client.post(f"/v1/interview/session/{session_id}/message", json={"content": "I like clouds"},
                               headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["role"] == "ASSISTANT"
        assert response.json()["content"] == "Why AWS?"

    @patch('app.api.interview.AiAgent')
    def test_chat_upstream_failure(self, mock_agent_cls, client, auth_headers, optimization):
        mock_agent_cls.return_value.chat_with_interviewer.side_effect = Exception("down")
        session_id = client.post("/v1/interview/session", json={"optimization_id": optimization.optimization_id},
                                 headers=auth_headers).json()["session"]["session_id"]

        response = client.post(f"/v1/interview/session/{session_id}/message", json={"content": "Hi"}, headers=auth_headers)

        assert response.status_code == 502
        assert response.json()["code"] == "UPSTREAM_ERROR"


class TestReportEndpoint:
    """Test suite for GET /v1/interview/session/{id}/report."""

    @patch('app.api.interview.AiAgent')
    def test_report_requires_completed_session(self, mock_agent_cls, client, auth_headers, optimization):
        session_id = client.post("/v1/interview/session", json={"optimization_id": optimization.optimization_id},
                                 headers=auth_headers).json()["session"]["session_id"]

        response = client.get(f"/v1/interview/session/{session_id}/report", headers=auth_headers)

        assert response.status_code == 403
        mock_agent_cls.return_value.generate.assert_not_called()

    @patch('app.api.interview.AiAgent')
    def test_report(self, mock_agent_cls, client, auth_headers, optimization, question_bank):
        mock_agent_cls.return_value.generate.return_value = REPORT_JSON
        session_id = client.post("/v1/interview/session", json={"optimization_id": optimization.optimization_id},
                                 headers=auth_headers).json()["session"]["session_id"]
        client.post(f"/v1/interview/session/{session_id}/answer", json={"content": "Answer"}, headers=auth_headers)
        client.post(f"/v1/interview/session/{session_id}/end", headers=auth_headers)

        response = client.get(f"/v1/interview/session/{session_id}/report", headers=auth_headers)

        assert response.status_code == 200
        report = response.json()
        assert report["analysis"]["overall_score"] == 84
        assert report["analysis"]["dimensions"]["logical_thinking"] == 84
        assert report["answered_questions"] == 1
        assert report["markdown"].startswith("# Mock Interview Report")


class TestPreparationGuideEndpoint:
    """Test suite for POST /v1/interview/preparation-guide."""

    @patch('app.api.interview.AiAgent')
    def test_guide_from_ai(self, mock_agent_cls, client, auth_headers, optimization):
        mock_agent_cls.return_value.preparation_guide.return_value = "# Guide"

        response = client.post("/v1/interview/preparation-guide",
                               json={"optimization_id": optimization.optimization_id, "focus": "system design"},
                               headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"content": "# Guide"}
        assert mock_agent_cls.return_value.preparation_guide.call_args[1]["focus"] == "system design"

    @patch('app.api.interview.AiAgent')
    def test_guide_fallback(self, mock_agent_cls, client, auth_headers, optimization):
        mock_agent_cls.return_value.preparation_guide.side_effect = Exception("down")

        response = client.post("/v1/interview/preparation-guide",
                               json={"optimization_id": optimization.optimization_id}, headers=auth_headers)

        assert response.status_code == 200
        content = response.json()["content"]
        assert "Backend Engineer at Acme" in content
        assert "AWS" in content


class TestTranscribeEndpoint:
    """Test suite for POST /v1/interview/audio/transcribe."""

    @patch('app.api.interview.AiAgent')
    def test_transcribe(self, mock_agent_cls, client, auth_headers):
        mock_agent_cls.return_value.transcribe_audio.return_value = "hello world"

        response = client.post("/v1/interview/audio/transcribe",
                               files={"file": ("answer.webm", b"fake-audio", "audio/webm")}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"text": "hello world"}

    @patch('app.api.interview.AiAgent')
    def test_empty_upload(self, mock_agent_cls, client, auth_headers):
        response = client.post("/v1/interview/audio/transcribe",
                               files={"file": ("answer.webm", b"", "audio/webm")}, headers=auth_headers)

        assert response.status_code == 400

    @patch('app.api.interview.AiAgent')
    def test_transcription_failure(self, mock_agent_cls, client, auth_headers):
        from app.core.exceptions import UpstreamError
        mock_agent_cls.return_value.transcribe_audio.side_effect = UpstreamError("Failed to transcribe audio")

        response = client.post("/v1/interview/audio/transcribe",
                               files={"file": ("answer.webm", b"fake-audio", "audio/webm")}, headers=auth_headers)

        assert response.status_code == 502


class TestVoiceAndHealth:
    """Test suite for /v1/voice and /health."""

    def test_list_default_voices(self, client, auth_headers):
        response = client.get("/v1/voice", headers=auth_headers)

        assert response.status_code == 200
        assert {v["voice_code"] for v in response.json()} == {"onyx", "nova", "alloy"}

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers
