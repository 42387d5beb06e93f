"""Dublin Core terms, with the ids and labels of a fresh installation."""

from .models import PropertySchema, VocabularySchema

_TERMS = [
    ("title", "Title"),
    ("creator", "Creator"),
    ("subject", "Subject"),
    ("description", "Description"),
    ("publisher", "Publisher"),
    ("contributor", "Contributor"),
    ("date", "Date"),
    ("type", "Type"),
    ("format", "Format"),
    ("identifier", "Identifier"),
    ("source", "Source"),
    ("language", "Language"),
    ("relation", "Relation"),
    ("coverage", "Coverage"),
    ("rights", "Rights"),
    ("audience", "Audience"),
    ("alternative", "Alternative Title"),
    ("tableOfContents", "Table Of Contents"),
    ("abstract", "Abstract"),
    ("created", "Date Created"),
    ("valid", "Date Valid"),
    ("available", "Date Available"),
    ("issued", "Date Issued"),
    ("modified", "Date Modified"),
    ("extent", "Extent"),
    ("medium", "Medium"),
    ("isVersionOf", "Is Version Of"),
    ("hasVersion", "Has Version"),
    ("isReplacedBy", "Is Replaced By"),
    ("replaces", "Replaces"),
    ("isRequiredBy", "Is Required By"),
    ("requires", "Requires"),
    ("isPartOf", "Is Part Of"),
    ("hasPart", "Has Part"),
    ("isReferencedBy", "Is Referenced By"),
    ("references", "References"),
    ("isFormatOf", "Is Format Of"),
    ("hasFormat", "Has Format"),
    ("conformsTo", "Conforms To"),
    ("spatial", "Spatial Coverage"),
    ("temporal", "Temporal Coverage"),
    ("mediator", "Mediator"),
    ("dateAccepted", "Date Accepted"),
    ("dateCopyrighted", "Date Copyrighted"),
    ("dateSubmitted", "Date Submitted"),
    ("educationLevel", "Audience Education Level"),
    ("accessRights", "Access Rights"),
    ("bibliographicCitation", "Bibliographic Citation"),
    ("license", "License"),
    ("rightsHolder", "Rights Holder"),
    ("provenance", "Provenance"),
    ("instructionalMethod", "Instructional Method"),
    ("accrualMethod", "Accrual Method"),
    ("accrualPeriodicity", "Accrual Periodicity"),
    ("accrualPolicy", "Accrual Policy"),
]

DUBLIN_CORE = VocabularySchema(
    prefix="dcterms",
    namespace_uri="http://purl.org/dc/terms/",
    label="Dublin Core",
    properties=[
        PropertySchema(id=index, local_name=local_name, label=label)
        for index, (local_name, label) in enumerate(_TERMS, start=1)
    ],
)
