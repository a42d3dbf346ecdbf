from __future__ import annotations

from html import escape


def render_index_page(default_model: str) -> str:
    model_html = escape(default_model)
    scripts = _recommend_script()
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Book Recommendations</title>
  <style>
    :root {{
      color-scheme: light dark;
      --border: #ccc;
      --accent: #3367d6;
      --muted: #666;
      --error-bg: #fdecea;
      font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
    }}
    [hidden] {{
      display: none !important;
    }}
    body {{
      margin: 0;
      padding: 1.5rem;
      background: #f7f8fb;
      color: #111;
      line-height: 1.55;
    }}
    main {{
      max-width: 720px;
      margin: 0 auto;
    }}
    h1 {{
      margin-top: 0;
      font-size: 1.4rem;
    }}
    section {{
      background: #fff;
      border: 1px solid var(--border);
      border-radius: 10px;
      padding: 1rem 1.2rem;
      margin-bottom: 1rem;
      box-shadow: 0 1px 2px rgba(15, 23, 42, 0.08);
    }}
    form {{
      display: flex;
      flex-wrap: wrap;
      gap: 0.6rem;
    }}
    input[type="text"] {{
      flex: 1 1 240px;
      padding: 0.5rem 0.6rem;
      border: 1px solid var(--border);
      border-radius: 6px;
    }}
    select, button {{
      padding: 0.5rem 0.8rem;
      border-radius: 6px;
      border: 1px solid var(--border);
    }}
    button {{
      background: var(--accent);
      border-color: var(--accent);
      color: #fff;
      cursor: pointer;
    }}
    button:disabled {{
      opacity: 0.6;
      cursor: wait;
    }}
    .loading {{
      color: var(--muted);
      font-style: italic;
    }}
    .original-book {{
      margin-bottom: 0.8rem;
    }}
    .recommendations {{
      white-space: pre-wrap;
    }}
    .model-note {{
      margin-top: 0.9rem;
      font-size: 0.85rem;
      color: var(--muted);
    }}
    .error {{
      background: var(--error-bg);
      border-radius: 6px;
      padding: 0.7rem 0.9rem;
    }}
  </style>
</head>
<body>
  <main>
    <h1>Book Recommendations</h1>
    <section>
      <form id="searchForm">
        <input type="text" id="bookInput" name="book" placeholder="Enter a book title" autocomplete="off" />
        <select id="modelSelect" name="model">
          <option value="{model_html}">{model_html}</option>
        </select>
        <button type="submit" id="searchBtn">Get Recommendations</button>
      </form>
    </section>
    <section>
      <div id="loading" class="loading" hidden>Asking the model for recommendations...</div>
      <div id="results"></div>
    </section>
  </main>
{scripts}
</body>
</html>"""


def _recommend_script() -> str:
    return """
    <script>
      (function(){
        const searchForm = document.getElementById('searchForm');
        const bookInput = document.getElementById('bookInput');
        const searchBtn = document.getElementById('searchBtn');
        const modelSelect = document.getElementById('modelSelect');
        const loading = document.getElementById('loading');
        const results = document.getElementById('results');

        function escapeHtml(value) {
          const node = document.createElement('div');
          node.textContent = value == null ? '' : String(value);
          return node.innerHTML;
        }

        async function loadModels() {
          try {
            const response = await fetch('/api/tags');
            const data = await response.json();
            if (data.models && data.models.length > 0) {
              modelSelect.innerHTML = '';
              data.models.forEach(function(model){
                const option = document.createElement('option');
                option.value = model.name;
                option.textContent = model.name;
                modelSelect.appendChild(option);
              });
            }
          } catch (err) {
            console.log('Could not load models, using default');
          }
        }

        function displayError(data) {
          let html = '<div class="error"><strong>Error:</strong> ' + escapeHtml(data.error);
          if (data.details) {
            html += '<br><small>' + escapeHtml(data.details) + '</small>';
          }
          if (data.tip) {
            html += '<br><small><em>' + escapeHtml(data.tip) + '</em></small>';
          }
          html += '</div>';
          results.innerHTML = html;
        }

        function displayResults(data) {
          if (data.error) {
            displayError(data);
            return;
          }
          results.innerHTML =
            '<div class="original-book"><strong>Recommendations for:</strong> "' +
            escapeHtml(data.originalBook) + '"</div>' +
            '<div class="recommendations">' + escapeHtml(data.recommendations) + '</div>' +
            '<div class="model-note"><em>Generated using ' + escapeHtml(data.model) + '</em></div>';
        }

        async function getRecommendations(book, model) {
          const response = await fetch('/api/recommend', {
            method: 'POST',
            headers: {'Content-Type': 'application/json'},
            body: JSON.stringify({book: book, model: model})
          });
          let data = null;
          try {
            data = await response.json();
          } catch (err) {
            data = null;
          }
          if (!response.ok) {
            if (data && data.error) {
              return data;
            }
            return {error: 'Server error: ' + response.status};
          }
          return data || {error: 'Empty response from server'};
        }

        searchForm.addEventListener('submit', async function(event){
          event.preventDefault();
          const book = bookInput.value.trim();
          const model = modelSelect.value;
          if (!book) {
            return;
          }
          loading.hidden = false;
          results.innerHTML = '';
          searchBtn.disabled = true;
          searchBtn.textContent = 'Searching...';
          try {
            displayResults(await getRecommendations(book, model));
          } catch (err) {
            displayResults({error: 'Failed to get recommendations: ' + err.message});
          } finally {
            loading.hidden = true;
            searchBtn.disabled = false;
            searchBtn.textContent = 'Get Recommendations';
          }
        });

        loadModels();
        bookInput.focus();
      })();
    </script>
    """
