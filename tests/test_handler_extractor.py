import textwrap

from axumdoc.domain.models import ExtractorKind
from axumdoc.extractors.axum.handlers import extract_handler


def src(s: str) -> str:
    return textwrap.dedent(s)


def test_extract_handler_doc_comment_split():
    source = src(
        """
        /// Summary line
        ///
        /// Detail one
        /// Detail two
        async fn handler() -> String {
            String::new()
        }
        """
    )
    info = extract_handler(source, "handler")
    assert info is not None
    assert info.summary == "Summary line"
    assert info.description == "Detail one\nDetail two"


def test_extract_handler_single_doc_line_has_no_description():
    source = src(
        """
        /// Single line comment
        async fn handler() -> &'static str {
            "ok"
        }
        """
    )
    info = extract_handler(source, "handler")
    assert info.summary == "Single line comment"
    assert info.description is None


def test_extract_handler_without_docs():
    source = src(
        """
        // not a doc comment
        async fn handler() {}
        """
    )
    info = extract_handler(source, "handler")
    assert info is not None
    assert info.summary is None
    assert info.description is None
    assert info.return_type is None
    assert info.parameters == ()


def test_extract_handler_docs_around_attributes():
    source = src(
        """
        #[allow(dead_code)]
        /// Get a user
        #[doc = "Looks the user up by id"]
        #[tracing::instrument]
        async fn get_user() {}
        """
    )
    info = extract_handler(source, "get_user")
    assert info.summary == "Get a user"
    assert info.description == "Looks the user up by id"


def test_extract_handler_docs_do_not_leak_from_previous_item():
    source = src(
        """
        /// Docs of first
        fn first() {}

        fn second() {}
        """
    )
    info = extract_handler(source, "second")
    assert info.summary is None


def test_extract_handler_recognizes_extractors_any_pattern():
    source = src(
        """
        async fn update(
            State(state): State<AppState>,
            Path(id): Path<u64>,
            Query(params): Query<ListParams>,
            axum::Json(body): axum::Json<UpdateUser>,
            headers: HeaderMap,
        ) -> Json<User> {
            todo!()
        }
        """
    )
    info = extract_handler(source, "update")
    kinds = [(p.kind, p.inner_type) for p in info.parameters]
    assert kinds == [
        (ExtractorKind.PATH, "u64"),
        (ExtractorKind.QUERY, "ListParams"),
        (ExtractorKind.BODY, "UpdateUser"),
    ]
    assert info.return_type == "Json<User>"


def test_extract_handler_form_and_tuple_path():
    source = src(
        """
        async fn submit(Path((a, b)): Path<(u32, String)>, Form(f): Form<SignupForm>) {}
        """
    )
    info = extract_handler(source, "submit")
    assert [p.kind for p in info.parameters] == [ExtractorKind.PATH, ExtractorKind.FORM]
    assert info.parameters[0].inner_type == "(u32,String)"
    assert info.parameters[1].inner_type == "SignupForm"


def test_extract_handler_first_match_wins_and_missing_is_none():
    source = src(
        """
        /// first
        fn dup() {}

        mod inner {
            /// second
            fn dup() {}

            /// nested only
            fn only_inner() -> u32 { 1 }
        }
        """
    )
    assert extract_handler(source, "dup").summary == "first"
    assert extract_handler(source, "only_inner").return_type == "u32"
    assert extract_handler(source, "nope") is None


def test_extract_handler_return_type_verbatim():
    source = src(
        """
        async fn list() -> Json<Vec<User>> { todo!() }
        """
    )
    assert extract_handler(source, "list").return_type == "Json<Vec<User>>"
