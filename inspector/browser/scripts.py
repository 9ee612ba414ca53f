"""
In-page extraction script.

Runs inside the rendered page and only reads globals. Every namespace is read in
its own try-scope so one failure never hides the others; values are cloned
through JSON so functions and cycles never cross the bridge.
"""


EXTRACTION_JS = """
(maxDataLayer) => {
    const clone = (value) => {
        try { return JSON.parse(JSON.stringify(value)); } catch (e) { return null; }
    };

    const result = {
        pageInfo: { title: document.title, url: window.location.href },
        optimizely: null,
        shopify: null,
        ga4: { gtag: false, dataLayer: false, dataLayerContents: [], error: null },
    };

    // ===== OPTIMIZELY =====
    if (window.optimizely && typeof window.optimizely.get === 'function') {
        const opt = window.optimizely;
        const snapshot = { state: null, data: null, visitor: null, errors: {} };

        try {
            const state = opt.get('state');
            if (state) {
                snapshot.state = {
                    activeExperimentIds: state.getActiveExperimentIds ? clone(state.getActiveExperimentIds()) : [],
                    variationMap: state.getVariationMap ? clone(state.getVariationMap()) : {},
                };
            }
        } catch (e) { snapshot.errors.state = e.message; }

        try {
            const data = opt.get('data');
            if (data) {
                snapshot.data = {
                    projectId: data.projectId,
                    accountId: data.accountId,
                    revision: data.revision,
                    experiments: clone(data.experiments),
                    campaigns: clone(data.campaigns),
                    audiences: clone(data.audiences),
                    pages: clone(data.pages),
                    events: clone(data.events),
                };
            }
        } catch (e) { snapshot.errors.data = e.message; }

        try {
            const visitor = opt.get('visitor');
            if (visitor) {
                snapshot.visitor = { visitorId: visitor.visitorId, custom: clone(visitor.custom) };
            }
        } catch (e) { snapshot.errors.visitor = e.message; }

        result.optimizely = snapshot;
    }

    // ===== SHOPIFY =====
    if (window.Shopify || window.ShopifyAnalytics) {
        const shopify = { detected: true };
        try {
            const s = window.Shopify;
            if (s) {
                shopify.shop = {
                    name: s.shop,
                    currency: s.currency ? s.currency.active : null,
                    locale: s.locale,
                    country: s.country,
                };
                shopify.theme = s.theme ? { id: s.theme.id, name: s.theme.name } : null;
                if (s.Checkout) {
                    shopify.checkout = { step: s.Checkout.step, page: s.Checkout.page };
                }
            }
            const meta = window.ShopifyAnalytics && window.ShopifyAnalytics.meta;
            if (meta) {
                shopify.page = meta.page ? {
                    type: meta.page.pageType,
                    resourceType: meta.page.resourceType,
                    resourceId: meta.page.resourceId,
                } : null;
                if (meta.product) {
                    shopify.product = { id: meta.product.id, vendor: meta.product.vendor, type: meta.product.type };
                }
            }
            if (window.__st) {
                shopify.customer = { loggedIn: !!window.__st.cid };
            }
        } catch (e) { shopify.error = e.message; }
        result.shopify = clone(shopify);
    }

    // ===== GA4 =====
    try {
        result.ga4.gtag = typeof window.gtag === 'function';
        if (Array.isArray(window.dataLayer)) {
            result.ga4.dataLayer = true;
            result.ga4.dataLayerContents = window.dataLayer.slice(0, maxDataLayer).map((item) => {
                const copy = clone(item);
                return copy === null ? { event: (item && item.event) || 'unknown' } : copy;
            });
        }
    } catch (e) { result.ga4.error = e.message; }

    return result;
}
"""
